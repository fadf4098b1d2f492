# tests/unit/combinators/test_wrappers.py
"""Tests for the thin decorators: deferred, read-only, appending and encoded references."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from strata.backends.memory import MemoryStorage
from strata.combinators.appender import AppendingStorage
from strata.combinators.deferred import DeferredStorage
from strata.combinators.encoded import EncodedReferences
from strata.combinators.read_only import ReadOnlyStorage
from strata.contracts.enums import HashAlgorithm
from strata.contracts.errors import NotFoundError, ReadOnlyError
from strata.contracts.reference import Reference
from strata.core.hashing import encode_reference

REF = Reference.parse("/a")


class TestDeferredStorage:
    def test_factory_not_called_until_used(self) -> None:
        factory = MagicMock(return_value=MemoryStorage())
        deferred = DeferredStorage(factory)

        assert not deferred.initialized
        factory.assert_not_called()

        deferred.put(REF, b"x")

        assert deferred.initialized
        assert deferred.get(REF) == b"x"
        factory.assert_called_once()

    def test_concurrent_first_use_builds_once(self) -> None:
        calls = 0
        counter_lock = threading.Lock()

        def slow_factory() -> MemoryStorage:
            nonlocal calls
            with counter_lock:
                calls += 1
            time.sleep(0.05)
            return MemoryStorage()

        deferred = DeferredStorage(slow_factory)
        built: list[object] = []
        threads = [threading.Thread(target=lambda: built.append(deferred.initialize())) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert calls == 1
        assert len({id(b) for b in built}) == 1

    def test_failed_factory_retried(self) -> None:
        factory = MagicMock(side_effect=[ConnectionError("backend down"), MemoryStorage()])
        deferred = DeferredStorage(factory)

        with pytest.raises(ConnectionError):
            deferred.get(REF)
        assert not deferred.initialized

        with pytest.raises(NotFoundError):
            deferred.get(REF)
        assert deferred.initialized

    def test_find_delegates(self) -> None:
        assert DeferredStorage(MemoryStorage).find("a/b") == Reference.from_path("a/b")


class TestReadOnlyStorage:
    def test_reads_pass_through(self, memory_storage: MemoryStorage) -> None:
        memory_storage.put(REF, b"x")
        view = ReadOnlyStorage(memory_storage)

        assert view.get(REF) == b"x"
        assert view.find("a") == Reference.from_path("a")

    def test_mutations_rejected(self, memory_storage: MemoryStorage) -> None:
        view = ReadOnlyStorage(memory_storage)

        with pytest.raises(ReadOnlyError):
            view.put(REF, b"x")
        with pytest.raises(ReadOnlyError):
            view.merge(REF, b"x")
        with pytest.raises(ReadOnlyError):
            view.delete(REF)
        assert len(memory_storage) == 0


class TestAppendingStorage:
    def test_merge_into_missing_creates(self, memory_storage: MemoryStorage) -> None:
        store = AppendingStorage(memory_storage)

        store.merge(REF, b"first")

        assert store.get(REF) == b"first"

    def test_merge_appends_bytes(self, memory_storage: MemoryStorage) -> None:
        store = AppendingStorage(memory_storage)
        store.put(REF, "ab")

        store.merge(REF, b"cd")
        store.merge(REF, "ef")

        assert store.get(REF) == b"abcdef"

    def test_delete_passes_through(self, memory_storage: MemoryStorage) -> None:
        store = AppendingStorage(memory_storage)
        store.put(REF, b"x")

        store.delete(REF)

        assert REF not in memory_storage


class TestEncodedReferences:
    def test_operations_use_encoded_key(self, memory_storage: MemoryStorage) -> None:
        store = EncodedReferences(memory_storage)
        ref = Reference.parse("https://example.com/a?b=1")

        store.put(ref, b"x")

        assert memory_storage.keys() == [str(encode_reference(ref))]
        assert store.get(ref) == b"x"
        store.delete(ref)
        assert len(memory_storage) == 0

    def test_merge_delegates(self) -> None:
        inner = MagicMock()
        store = EncodedReferences(inner, HashAlgorithm.SHAKE256)

        store.merge(REF, b"x")

        inner.merge.assert_called_once_with(encode_reference(REF, HashAlgorithm.SHAKE256), b"x")

    def test_equal_references_share_a_key(self) -> None:
        store = EncodedReferences(MemoryStorage())

        assert store.encode(Reference.parse("/x?b=2&a=1")) == store.encode(Reference.parse("/x?a=1&b=2"))
