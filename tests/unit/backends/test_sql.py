# tests/unit/backends/test_sql.py
"""Tests for the SQL key/value backend."""

from collections.abc import Iterator
from pathlib import Path

import pytest
from sqlalchemy import inspect, select

from strata.backends.sql import SQLStorage, objects_table
from strata.contracts.errors import NotFoundError
from strata.contracts.reference import Reference

REF = Reference.parse("/doc?b=2&a=1")


@pytest.fixture
def sql_storage() -> Iterator[SQLStorage]:
    storage = SQLStorage.in_memory()
    yield storage
    storage.close()


class TestSQLStorage:
    def test_table_created(self, sql_storage: SQLStorage) -> None:
        assert "strata_objects" in inspect(sql_storage.engine).get_table_names()

    def test_put_get(self, sql_storage: SQLStorage) -> None:
        sql_storage.put(REF, b"value")

        assert sql_storage.get(REF) == b"value"

    def test_put_replaces(self, sql_storage: SQLStorage) -> None:
        sql_storage.put(REF, b"one")
        sql_storage.put(REF, "two")

        assert sql_storage.get(REF) == b"two"

    def test_rows_keyed_by_canonical_string(self, sql_storage: SQLStorage) -> None:
        sql_storage.put(REF, b"v")

        with sql_storage.connection() as conn:
            keys = [row[0] for row in conn.execute(select(objects_table.c.key))]

        assert keys == ["/doc?a=1&b=2"]

    def test_merge_appends(self, sql_storage: SQLStorage) -> None:
        sql_storage.merge(REF, b"a")
        sql_storage.merge(REF, b"b")

        assert sql_storage.get(REF) == b"ab"

    def test_missing_is_not_found(self, sql_storage: SQLStorage) -> None:
        with pytest.raises(NotFoundError):
            sql_storage.get(REF)
        with pytest.raises(NotFoundError):
            sql_storage.delete(REF)

    def test_delete(self, sql_storage: SQLStorage) -> None:
        sql_storage.put(REF, b"v")

        sql_storage.delete(REF)

        with pytest.raises(NotFoundError):
            sql_storage.get(REF)

    def test_file_database_persists(self, tmp_path: Path) -> None:
        url = f"sqlite:///{tmp_path / 'strata.db'}"
        first = SQLStorage.from_url(url)
        first.put(REF, b"durable")
        first.close()

        second = SQLStorage.from_url(url)
        try:
            assert second.get(REF) == b"durable"
        finally:
            second.close()
