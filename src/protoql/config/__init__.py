"""Config module exports."""

from protoql.config.loader import load_config
from protoql.config.models import (
    CompilerConfig,
    DatabaseConfig,
    LoggingConfig,
    LogOutputConfig,
    OutputConfig,
    ProtoQLConfig,
)

__all__ = [
    "load_config",
    "ProtoQLConfig",
    "DatabaseConfig",
    "CompilerConfig",
    "OutputConfig",
    "LoggingConfig",
    "LogOutputConfig",
]
