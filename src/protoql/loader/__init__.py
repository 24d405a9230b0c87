"""Descriptor flattening: walk compiled descriptors and emit relational rows."""

from protoql.loader.channels import ChannelGroup, TableChannel, open_channels
from protoql.loader.engine import DescriptorLoader, LoadStats
from protoql.loader.options import encode_message, encode_options
from protoql.loader.resolver import BatchResolver

__all__ = [
    "DescriptorLoader",
    "LoadStats",
    "BatchResolver",
    "ChannelGroup",
    "TableChannel",
    "open_channels",
    "encode_options",
    "encode_message",
]
