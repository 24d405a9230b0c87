"""protoql error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Load (schema setup, row emission, flush, descriptor shape)
- 4xxx: Compile
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Load (3xxx)
    SCHEMA_SETUP_FAILED = 3001
    ROW_EMISSION_FAILED = 3002
    FLUSH_FAILED = 3003
    MALFORMED_DESCRIPTOR = 3004

    # Compile (4xxx)
    COMPILE_FAILED = 4001

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(slots=True)
class ProtoQLError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'FLUSH_FAILED')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(ProtoQLError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class LoadError(ProtoQLError):
    """Errors raised while creating the schema or loading a batch."""


class SchemaError(LoadError):
    """The backing store rejected the table layout."""

    @classmethod
    def rejected(cls, table: str, reason: str) -> "SchemaError":
        return cls(
            code=ErrorCode.SCHEMA_SETUP_FAILED,
            message=f"Failed to create table '{table}': {reason}",
            details={"table": table, "reason": reason},
        )

    @classmethod
    def incompatible(cls, table: str, missing: list[str]) -> "SchemaError":
        return cls(
            code=ErrorCode.SCHEMA_SETUP_FAILED,
            message=f"Existing table '{table}' is missing columns: {', '.join(missing)}",
            details={"table": table, "missing_columns": missing},
        )


class RowEmissionError(LoadError):
    """A row was rejected while it was being queued."""

    @classmethod
    def duplicate_key(cls, table: str, key: tuple[Any, ...], file: str | None) -> "RowEmissionError":
        key_str = ", ".join(str(k) for k in key)
        return cls(
            code=ErrorCode.ROW_EMISSION_FAILED,
            message=f"Duplicate key ({key_str}) in table '{table}' while loading {file}",
            details={"table": table, "key": list(key), "file": file, "reason": "duplicate_key"},
        )

    @classmethod
    def malformed_row(cls, table: str, reason: str, file: str | None) -> "RowEmissionError":
        return cls(
            code=ErrorCode.ROW_EMISSION_FAILED,
            message=f"Malformed row for table '{table}' while loading {file}: {reason}",
            details={"table": table, "file": file, "reason": reason},
        )


class FlushError(LoadError):
    """The store failed to accept the buffered rows of a batch."""

    @classmethod
    def rejected(cls, table: str, reason: str, files: list[str]) -> "FlushError":
        return cls(
            code=ErrorCode.FLUSH_FAILED,
            message=f"Store rejected rows for table '{table}': {reason}",
            details={"table": table, "reason": reason, "files": files},
        )


class MalformedDescriptorError(LoadError):
    """The descriptor tree contradicts itself."""

    @classmethod
    def dangling_oneof(cls, field_id: str, index: int, file: str) -> "MalformedDescriptorError":
        return cls(
            code=ErrorCode.MALFORMED_DESCRIPTOR,
            message=f"Field {field_id} references missing oneof #{index} in {file}",
            details={"field": field_id, "oneof_index": index, "file": file},
        )


class CompileError(ProtoQLError):
    """protoc could not produce descriptors."""

    @classmethod
    def failed(cls, files: list[str], diagnostics: list[str]) -> "CompileError":
        summary = diagnostics[0] if diagnostics else "protoc exited with an error"
        return cls(
            code=ErrorCode.COMPILE_FAILED,
            message=f"Failed to compile {len(files)} file(s): {summary}",
            details={"files": files, "diagnostics": diagnostics},
        )


class InternalError(ProtoQLError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
