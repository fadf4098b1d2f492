# src/strata/backends/sql.py
"""Key/value storage in a SQL table.

Uses SQLAlchemy Core (not ORM) so the same backend runs on SQLite and
PostgreSQL. Keys are canonical reference strings; values are raw bytes.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Self

from sqlalchemy import Column, DateTime, LargeBinary, MetaData, String, Table, create_engine, event, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import StaticPool

from strata.contracts.errors import NotFoundError
from strata.contracts.payload import to_bytes
from strata.contracts.reference import Reference
from strata.contracts.storage import BaseStorage

__all__ = ["SQLStorage", "metadata", "objects_table"]

metadata = MetaData()

objects_table = Table(
    "strata_objects",
    metadata,
    Column("key", String(2048), primary_key=True),
    Column("value", LargeBinary, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)


class SQLStorage(BaseStorage):
    """Storage backed by the ``strata_objects`` table.

    put replaces the row, merge appends to the stored bytes (creating the
    row if needed), delete removes it. Each operation runs in its own
    transaction.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        metadata.create_all(engine)

    @classmethod
    def from_url(cls, url: str) -> Self:
        engine = create_engine(url, echo=False)
        if url.startswith("sqlite"):
            cls._configure_sqlite(engine)
        return cls(engine)

    @classmethod
    def in_memory(cls) -> Self:
        """In-memory SQLite database for testing.

        StaticPool keeps one connection so every thread sees the same database.
        """
        engine = create_engine(
            "sqlite://",
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        return cls(engine)

    @staticmethod
    def _configure_sqlite(engine: Engine) -> None:
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
            cursor.execute("PRAGMA journal_mode=WAL")
            # Avoid immediate SQLITE_BUSY under contention
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        """Connection in a transaction; commits on success, rolls back on exception."""
        with self._engine.begin() as conn:
            yield conn

    def close(self) -> None:
        self._engine.dispose()

    def _read(self, conn: Connection, key: str) -> bytes | None:
        row = conn.execute(select(objects_table.c.value).where(objects_table.c.key == key)).first()
        return None if row is None else bytes(row[0])

    def _write(self, conn: Connection, key: str, value: bytes, exists: bool) -> None:
        now = datetime.now(UTC)
        if exists:
            conn.execute(objects_table.update().where(objects_table.c.key == key).values(value=value, updated_at=now))
        else:
            conn.execute(objects_table.insert().values(key=key, value=value, updated_at=now))

    def get(self, reference: Reference) -> bytes:
        with self.connection() as conn:
            value = self._read(conn, str(reference))
        if value is None:
            raise NotFoundError(reference)
        return value

    def put(self, reference: Reference, payload: object) -> None:
        data = to_bytes(payload)
        key = str(reference)
        with self.connection() as conn:
            self._write(conn, key, data, exists=self._read(conn, key) is not None)

    def merge(self, reference: Reference, payload: object) -> None:
        data = to_bytes(payload)
        key = str(reference)
        with self.connection() as conn:
            existing = self._read(conn, key)
            if existing is None:
                self._write(conn, key, data, exists=False)
            else:
                self._write(conn, key, existing + data, exists=True)

    def delete(self, reference: Reference) -> None:
        with self.connection() as conn:
            result = conn.execute(objects_table.delete().where(objects_table.c.key == str(reference)))
        if result.rowcount == 0:
            raise NotFoundError(reference)

    def find(self, name: str) -> Reference:
        return Reference.from_path(name)
