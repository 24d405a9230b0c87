"""Secondary index creation for query performance.

The primary keys cover lookups by id. These indexes cover the by-name join
columns that ad-hoc queries use to walk between tables (fields of a message,
methods of a service, ...). They are plain, non-unique indexes and do not
enforce referential integrity.

Call create_additional_indexes() after the tables exist.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import text

if TYPE_CHECKING:
    from sqlalchemy import Engine


ADDITIONAL_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_messages_file ON messages(file)",
    "CREATE INDEX IF NOT EXISTS idx_messages_parent ON messages(parent_message)",
    "CREATE INDEX IF NOT EXISTS idx_fields_message ON fields(message)",
    "CREATE INDEX IF NOT EXISTS idx_fields_type_name ON fields(type_name)",
    "CREATE INDEX IF NOT EXISTS idx_enums_file ON enums(file)",
    "CREATE INDEX IF NOT EXISTS idx_enum_values_enum ON enum_values(enum)",
    "CREATE INDEX IF NOT EXISTS idx_services_file ON services(file)",
    "CREATE INDEX IF NOT EXISTS idx_methods_service ON methods(service)",
    "CREATE INDEX IF NOT EXISTS idx_extensions_extendee ON extensions(extendee)",
    "CREATE INDEX IF NOT EXISTS idx_oneofs_message ON oneofs(message)",
    "CREATE INDEX IF NOT EXISTS idx_oneof_fields_field ON oneof_fields(field_id)",
    "CREATE INDEX IF NOT EXISTS idx_dependencies_dependency ON dependencies(dependency)",
]


def create_additional_indexes(engine: Engine) -> None:
    """Create the secondary indexes; safe to call repeatedly."""
    with engine.connect() as conn:
        for sql in ADDITIONAL_INDEXES:
            conn.execute(text(sql))
        conn.commit()
