"""protoql - flatten protobuf descriptors into SQL tables."""

from protoql.loader import DescriptorLoader, LoadStats
from protoql.store import Database

__version__ = "0.1.0"

__all__ = ["Database", "DescriptorLoader", "LoadStats", "__version__"]
