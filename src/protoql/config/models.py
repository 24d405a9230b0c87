"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (PROTOQL__SECTION__KEY)
3. Project YAML (.protoql/config.yaml)
4. Global YAML (~/.config/protoql/config.yaml)
5. Built-in defaults (this file)

Examples:
    PROTOQL__LOGGING__LEVEL=DEBUG
    PROTOQL__DATABASE__PATH=/tmp/protos.db
    PROTOQL__OUTPUT__FORMAT=json
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
OutputFormat = Literal["table", "json", "csv"]

MEMORY_DATABASE = ":memory:"


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        PROTOQL__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="WARNING",
        description="Root log level. The CLI raises this to DEBUG with --verbose.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class DatabaseConfig(BaseModel):
    """Relational store configuration.

    Env vars:
        PROTOQL__DATABASE__PATH: SQLite file, or :memory: (default)
        PROTOQL__DATABASE__BUSY_TIMEOUT_MS: SQLite busy timeout for file databases
    """

    path: str = Field(
        default=MEMORY_DATABASE,
        description="SQLite database file. ':memory:' keeps the tables for the process lifetime only.",
    )
    busy_timeout_ms: int = Field(
        default=30000,
        description="How long a file database waits on a locked writer before failing.",
    )

    @field_validator("busy_timeout_ms")
    @classmethod
    def validate_busy_timeout(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"busy_timeout_ms must be >= 0, got {v}")
        return v

    @property
    def is_memory(self) -> bool:
        return self.path == MEMORY_DATABASE


class CompilerConfig(BaseModel):
    """protoc invocation configuration.

    Env vars:
        PROTOQL__COMPILER__LENIENT: Keep going when individual files fail to compile
        PROTOQL__COMPILER__TIMEOUT_SEC: Max seconds for one protoc run
    """

    import_paths: list[str] = Field(
        default_factory=list,
        description="Extra include directories passed to protoc as -I.",
    )
    lenient: bool = Field(
        default=False,
        description="Compile files one by one and skip the ones that fail.",
    )
    timeout_sec: float = Field(
        default=120.0,
        description="Timeout for a single protoc subprocess.",
    )


class OutputConfig(BaseModel):
    """Query result rendering.

    Env vars:
        PROTOQL__OUTPUT__FORMAT: table, json or csv
        PROTOQL__OUTPUT__HISTORY_FILE: Interactive shell history location
    """

    format: OutputFormat = "table"
    history_file: str = Field(
        default="~/.pbql_history",
        description="Interactive shell history file.",
    )


class ProtoQLConfig(BaseModel):
    """Root configuration model."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    compiler: CompilerConfig = Field(default_factory=CompilerConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
