"""SQLModel definitions for the flattened descriptor tables.

Single source of truth for the table/column contract that queries depend on.

Identifiers are strings. Composite ids join the parent id and the local
name with ID_SEPARATOR, which cannot appear inside a protobuf identifier.

No foreign keys are declared: references between tables (fields.message ->
messages.full_name, methods.input_type -> messages.full_name, ...) are
by-name joins that hold for a well-formed batch but are never enforced.

Every ``options`` column is JSON. SQL NULL means "no option set"; a present
value is always a non-empty object.
"""

from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

ID_SEPARATOR = "."


def join_id(parent: str, name: str) -> str:
    """Build a composite identifier from a parent id and a local name."""
    if not parent:
        return name
    return f"{parent}{ID_SEPARATOR}{name}"


def _options_column() -> Any:
    return Field(default=None, sa_column=Column("options", JSON(none_as_null=True)))


class FileRow(SQLModel, table=True):
    """One compiled .proto file."""

    __tablename__ = "files"

    name: str = Field(primary_key=True)
    package: str | None = None
    syntax: str
    options: dict[str, Any] | None = _options_column()


class DependencyRow(SQLModel, table=True):
    """An import edge between two files."""

    __tablename__ = "dependencies"

    file: str = Field(primary_key=True)
    dependency: str = Field(primary_key=True)
    is_public: bool = False
    is_weak: bool = False


class MessageRow(SQLModel, table=True):
    """A message type, top-level or nested."""

    __tablename__ = "messages"

    full_name: str = Field(primary_key=True)
    name: str
    file: str
    parent_message: str | None = None
    is_map_entry: bool = False
    options: dict[str, Any] | None = _options_column()


class FieldRow(SQLModel, table=True):
    """A field of a message; id is ``<message>.<name>``."""

    __tablename__ = "fields"

    id: str = Field(primary_key=True)
    name: str
    number: int
    message: str
    type: str
    type_name: str | None = None
    label: str | None = None
    is_repeated: bool = False
    is_optional: bool = False
    is_map: bool = False
    map_key_type: str | None = None
    map_value_type: str | None = None
    default_value: str | None = None
    json_name: str | None = None
    options: dict[str, Any] | None = _options_column()


class EnumRow(SQLModel, table=True):
    """An enum type, top-level or nested."""

    __tablename__ = "enums"

    full_name: str = Field(primary_key=True)
    name: str
    file: str
    parent_message: str | None = None
    options: dict[str, Any] | None = _options_column()


class EnumValueRow(SQLModel, table=True):
    """A value of an enum; id is ``<enum>.<name>``."""

    __tablename__ = "enum_values"

    id: str = Field(primary_key=True)
    name: str
    number: int
    enum: str
    options: dict[str, Any] | None = _options_column()


class ServiceRow(SQLModel, table=True):
    """An RPC service."""

    __tablename__ = "services"

    full_name: str = Field(primary_key=True)
    name: str
    file: str
    options: dict[str, Any] | None = _options_column()


class MethodRow(SQLModel, table=True):
    """An RPC method; full_name is ``<service>.<name>``."""

    __tablename__ = "methods"

    full_name: str = Field(primary_key=True)
    name: str
    service: str
    input_type: str
    output_type: str
    client_streaming: bool = False
    server_streaming: bool = False
    options: dict[str, Any] | None = _options_column()


class ExtensionRow(SQLModel, table=True):
    """An extension field declared at file or message scope."""

    __tablename__ = "extensions"

    full_name: str = Field(primary_key=True)
    name: str
    number: int
    file: str
    extendee: str
    type: str
    type_name: str | None = None
    options: dict[str, Any] | None = _options_column()


class OneofRow(SQLModel, table=True):
    """A user-declared oneof; id is ``<message>.<name>``."""

    __tablename__ = "oneofs"

    id: str = Field(primary_key=True)
    name: str
    message: str
    options: dict[str, Any] | None = _options_column()


class OneofFieldRow(SQLModel, table=True):
    """Junction between oneofs and their member fields."""

    __tablename__ = "oneof_fields"

    oneof_id: str = Field(primary_key=True)
    field_id: str = Field(primary_key=True)


# Insertion order for flushes and the order tables are listed to users.
ALL_TABLES: tuple[type[SQLModel], ...] = (
    FileRow,
    MessageRow,
    FieldRow,
    EnumRow,
    EnumValueRow,
    ServiceRow,
    MethodRow,
    ExtensionRow,
    OneofRow,
    OneofFieldRow,
    DependencyRow,
)


def table_name(model: type[SQLModel]) -> str:
    return model.__table__.name  # type: ignore[attr-defined,no-any-return]


def column_names(model: type[SQLModel]) -> list[str]:
    """Column names of a table in declaration order."""
    return [c.name for c in model.__table__.columns]  # type: ignore[attr-defined]


def primary_key_names(model: type[SQLModel]) -> list[str]:
    return [c.name for c in model.__table__.primary_key.columns]  # type: ignore[attr-defined]
