"""Per-table row buffers opened and flushed as one group.

A ChannelGroup holds one TableChannel per output table over a single
BulkWriter. Rows are validated and queued in memory while the descriptor
walk runs; nothing reaches the store until flush(), and the writer's
transaction commits only after every table has been flushed. Any failure
before that point leaves the store untouched.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy.exc import SQLAlchemyError

from protoql.core.errors import FlushError, InternalError, RowEmissionError
from protoql.store.models import (
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
    column_names,
    primary_key_names,
    table_name,
)

if TYPE_CHECKING:
    from sqlmodel import SQLModel

    from protoql.store.database import BulkWriter, Database

logger = structlog.get_logger()


class TableChannel:
    """Buffered rows for one table, with in-batch primary key checks."""

    def __init__(self, model: type[SQLModel]) -> None:
        self.model = model
        self.name = table_name(model)
        self.columns = tuple(column_names(model))
        self.key_columns = tuple(primary_key_names(model))
        self.rows: list[dict[str, Any]] = []
        self._keys: set[tuple[Any, ...]] = set()
        self._closed = False

    def __len__(self) -> int:
        return len(self.rows)

    def append(self, *, source_file: str | None = None, **values: Any) -> None:
        """Queue one row. Columns not given are stored as NULL.

        Raises:
            RowEmissionError: Unknown column, NULL key column, or a key that
                was already queued in this batch.
        """
        if self._closed:
            raise InternalError.unexpected("append on closed channel", table=self.name)

        unknown = sorted(set(values) - set(self.columns))
        if unknown:
            raise RowEmissionError.malformed_row(
                self.name, f"unknown columns {', '.join(unknown)}", source_file
            )

        row = {col: values.get(col) for col in self.columns}
        key = tuple(row[col] for col in self.key_columns)
        if any(part is None for part in key):
            raise RowEmissionError.malformed_row(self.name, "primary key column is NULL", source_file)
        if key in self._keys:
            raise RowEmissionError.duplicate_key(self.name, key, source_file)

        self._keys.add(key)
        self.rows.append(row)

    def close(self) -> None:
        """Release the buffer; further appends are an error."""
        self._closed = True
        self.rows = []
        self._keys.clear()


class ChannelGroup:
    """The eleven table channels of one load batch."""

    def __init__(self, writer: BulkWriter) -> None:
        self._writer = writer
        self.files = TableChannel(FileRow)
        self.messages = TableChannel(MessageRow)
        self.fields = TableChannel(FieldRow)
        self.enums = TableChannel(EnumRow)
        self.enum_values = TableChannel(EnumValueRow)
        self.services = TableChannel(ServiceRow)
        self.methods = TableChannel(MethodRow)
        self.extensions = TableChannel(ExtensionRow)
        self.oneofs = TableChannel(OneofRow)
        self.oneof_fields = TableChannel(OneofFieldRow)
        self.dependencies = TableChannel(DependencyRow)

    def channels(self) -> tuple[TableChannel, ...]:
        return (
            self.files,
            self.messages,
            self.fields,
            self.enums,
            self.enum_values,
            self.services,
            self.methods,
            self.extensions,
            self.oneofs,
            self.oneof_fields,
            self.dependencies,
        )

    def flush(self) -> dict[str, int]:
        """Write every queued row through the writer, returning per-table counts.

        Raises:
            FlushError: The store rejected the rows of some table.
        """
        loaded_files = [row["name"] for row in self.files.rows]
        counts: dict[str, int] = {}
        for channel in self.channels():
            try:
                counts[channel.name] = self._writer.insert_many(channel.model, channel.rows)
            except SQLAlchemyError as e:
                reason = str(getattr(e, "orig", None) or e)
                raise FlushError.rejected(channel.name, reason, loaded_files) from e
            logger.debug("channel_flushed", table=channel.name, rows=counts[channel.name])
        return counts

    def close(self) -> None:
        for channel in self.channels():
            channel.close()


@contextmanager
def open_channels(database: Database) -> Generator[ChannelGroup, None, None]:
    """Acquire all channels over one writer; commit on success, roll back on error.

    Channels are released on every exit path.
    """
    with database.bulk_writer() as writer:
        group = ChannelGroup(writer)
        try:
            yield group
        finally:
            group.close()
