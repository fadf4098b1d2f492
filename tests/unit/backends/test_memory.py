# tests/unit/backends/test_memory.py
"""Tests for the in-memory backend."""

import pytest

from strata.backends.memory import MemoryStorage
from strata.contracts.errors import NotFoundError, NotSupportedError
from strata.contracts.reference import Reference


class TestMemoryStorage:
    def test_put_get(self, memory_storage: MemoryStorage) -> None:
        ref = Reference.parse("/a")

        memory_storage.put(ref, {"structured": True})

        assert memory_storage.get(ref) == {"structured": True}

    def test_keys_are_canonical(self, memory_storage: MemoryStorage) -> None:
        memory_storage.put(Reference.parse("/a?y=2&x=1"), b"v")

        assert memory_storage.get(Reference.parse("/a?x=1&y=2")) == b"v"
        assert memory_storage.keys() == ["/a?x=1&y=2"]

    def test_missing_is_not_found(self, memory_storage: MemoryStorage) -> None:
        with pytest.raises(NotFoundError):
            memory_storage.get(Reference.parse("/absent"))
        with pytest.raises(NotFoundError):
            memory_storage.delete(Reference.parse("/absent"))

    def test_stored_none_is_deletable(self, memory_storage: MemoryStorage) -> None:
        ref = Reference.parse("/none")
        memory_storage.put(ref, None)

        memory_storage.delete(ref)

        assert ref not in memory_storage

    def test_merge_unsupported(self, memory_storage: MemoryStorage) -> None:
        with pytest.raises(NotSupportedError, match=r"MemoryStorage\.merge"):
            memory_storage.merge(Reference.parse("/a"), b"x")
