"""SQLite storage for the descriptor tables.

Database owns the SQLAlchemy engine, in memory or file backed. Loads go
through BulkWriter so a whole batch commits or rolls back as a unit.
Queries go through execute_query, which hands SQL to the driver verbatim
so user text is never parsed for bind parameters.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import event, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from protoql.config.models import MEMORY_DATABASE
from protoql.core.errors import SchemaError
from protoql.store.indexes import create_additional_indexes
from protoql.store.models import ALL_TABLES, column_names, table_name

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = structlog.get_logger()


@dataclass
class QueryResult:
    """Columns and rows of one ad-hoc statement."""

    columns: list[str] = field(default_factory=list)
    rows: list[tuple[Any, ...]] = field(default_factory=list)

    @property
    def rowcount(self) -> int:
        return len(self.rows)

    def as_dicts(self) -> list[dict[str, Any]]:
        return [dict(zip(self.columns, row, strict=True)) for row in self.rows]


class Database:
    """SQLite connection manager.

    ``:memory:`` databases share one connection through a static pool so the
    tables outlive any single session; file databases use WAL mode.
    """

    def __init__(self, path: str | Path = MEMORY_DATABASE, busy_timeout_ms: int = 30000) -> None:
        self.path = str(path)
        self._busy_timeout_ms = busy_timeout_ms
        self.engine = self._create_engine()

    @property
    def is_memory(self) -> bool:
        return self.path == MEMORY_DATABASE

    def _create_engine(self) -> Engine:
        if self.is_memory:
            return create_engine(
                "sqlite://",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )

        engine = create_engine(
            f"sqlite:///{self.path}",
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
        )
        busy_timeout = self._busy_timeout_ms

        def _configure_pragmas(dbapi_conn: Any, _connection_record: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout)}")
            cursor.execute("PRAGMA synchronous=NORMAL")  # Safe with WAL
            cursor.close()

        event.listen(engine, "connect", _configure_pragmas)
        return engine

    def ensure_schema(self) -> None:
        """Create the eleven tables and their indexes if absent.

        Idempotent. Tables that already exist are checked for the expected
        columns; extra columns are tolerated, missing ones are not.

        Raises:
            SchemaError: The store rejected a table, or an existing table has
                an incompatible shape.
        """
        for model in ALL_TABLES:
            name = table_name(model)
            try:
                model.__table__.create(self.engine, checkfirst=True)  # type: ignore[attr-defined]
            except SQLAlchemyError as e:
                raise SchemaError.rejected(name, str(e)) from e

        self._verify_columns()

        try:
            create_additional_indexes(self.engine)
        except SQLAlchemyError as e:
            raise SchemaError.rejected("indexes", str(e)) from e

        logger.debug("schema_ready", tables=len(ALL_TABLES), path=self.path)

    def _verify_columns(self) -> None:
        inspector = inspect(self.engine)
        for model in ALL_TABLES:
            name = table_name(model)
            existing = {col["name"] for col in inspector.get_columns(name)}
            missing = [col for col in column_names(model) if col not in existing]
            if missing:
                raise SchemaError.incompatible(name, missing)

    @contextmanager
    def bulk_writer(self) -> Generator[BulkWriter, None, None]:
        """Writer whose rows become visible together or not at all.

        The transaction commits when the block exits normally and rolls back
        when it raises; the connection is returned to the pool either way.
        """
        writer = BulkWriter(self.engine)
        try:
            yield writer
            writer.commit()
        except Exception:
            writer.rollback()
            raise
        finally:
            writer.close()

    def execute_query(self, sql: str) -> QueryResult:
        """Run one statement exactly as written and collect what it returns."""
        with self.engine.connect() as conn:
            cursor = conn.exec_driver_sql(sql)
            result = QueryResult()
            if cursor.returns_rows:
                result.columns = list(cursor.keys())
                result.rows = [tuple(row) for row in cursor]
            conn.commit()
        return result

    def count_rows(self, table: str) -> int:
        return int(self.execute_query(f'SELECT COUNT(*) FROM "{table}"').rows[0][0])

    def close(self) -> None:
        self.engine.dispose()


class BulkWriter:
    """Executemany inserts of row dicts over one connection and transaction."""

    def __init__(self, engine: Engine) -> None:
        self.conn = engine.connect()
        self.transaction = self.conn.begin()

    def insert_many(self, model: type[SQLModel], rows: list[dict[str, Any]]) -> int:
        """Insert rows into model's table; returns how many were sent."""
        if rows:
            self.conn.execute(model.__table__.insert(), rows)  # type: ignore[attr-defined]
        return len(rows)

    def commit(self) -> None:
        if self.transaction.is_active:
            self.transaction.commit()

    def rollback(self) -> None:
        if self.transaction.is_active:
            self.transaction.rollback()

    def close(self) -> None:
        self.conn.close()
