"""Relational schema and storage for flattened descriptors."""

from protoql.store.database import BulkWriter, Database, QueryResult
from protoql.store.indexes import create_additional_indexes
from protoql.store.models import (
    ALL_TABLES,
    ID_SEPARATOR,
    DependencyRow,
    EnumRow,
    EnumValueRow,
    ExtensionRow,
    FieldRow,
    FileRow,
    MessageRow,
    MethodRow,
    OneofFieldRow,
    OneofRow,
    ServiceRow,
    join_id,
)

__all__ = [
    "Database",
    "BulkWriter",
    "QueryResult",
    "create_additional_indexes",
    "ALL_TABLES",
    "ID_SEPARATOR",
    "join_id",
    "FileRow",
    "DependencyRow",
    "MessageRow",
    "FieldRow",
    "EnumRow",
    "EnumValueRow",
    "ServiceRow",
    "MethodRow",
    "ExtensionRow",
    "OneofRow",
    "OneofFieldRow",
]
