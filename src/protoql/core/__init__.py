"""Core module exports."""

from protoql.core.errors import (
    CompileError,
    ConfigError,
    ErrorCode,
    FlushError,
    InternalError,
    LoadError,
    MalformedDescriptorError,
    ProtoQLError,
    RowEmissionError,
    SchemaError,
)
from protoql.core.logging import (
    clear_batch_id,
    configure_logging,
    get_batch_id,
    set_batch_id,
)
from protoql.core.progress import spinner, status

__all__ = [
    # Errors
    "ProtoQLError",
    "ErrorCode",
    "ConfigError",
    "LoadError",
    "SchemaError",
    "RowEmissionError",
    "FlushError",
    "MalformedDescriptorError",
    "CompileError",
    "InternalError",
    # Logging
    "clear_batch_id",
    "configure_logging",
    "get_batch_id",
    "set_batch_id",
    # Progress
    "spinner",
    "status",
]
