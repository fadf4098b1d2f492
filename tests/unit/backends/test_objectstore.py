# tests/unit/backends/test_objectstore.py
"""Tests for MemoryObjectStore and ObjectStorage."""

import pytest

from strata.backends.objectstore import MemoryObjectStore, ObjectStorage, ObjectStore
from strata.contracts.errors import NotFoundError, NotSupportedError, StorageError
from strata.contracts.reference import ObjectReference, Reference
from tests.conftest import TEST_BUCKET


class TestMemoryObjectStore:
    """S3 semantics for the in-process store."""

    def test_satisfies_protocol(self, object_store: MemoryObjectStore) -> None:
        assert isinstance(object_store, ObjectStore)

    def test_unknown_bucket(self, object_store: MemoryObjectStore) -> None:
        with pytest.raises(NotFoundError, match="no such bucket"):
            object_store.get_object("other", "k")

    def test_missing_key(self, object_store: MemoryObjectStore) -> None:
        with pytest.raises(NotFoundError, match="no such key"):
            object_store.get_object(TEST_BUCKET, "k")

    def test_delete_absent_key_succeeds(self, object_store: MemoryObjectStore) -> None:
        object_store.delete_object(TEST_BUCKET, "k")

    def test_list_is_sorted_and_paginated(self) -> None:
        store = MemoryObjectStore([TEST_BUCKET], page_size=2)
        for key in ["p/c", "p/a", "q/z", "p/b"]:
            store.put_object(TEST_BUCKET, key, b"")

        assert list(store.list_keys(TEST_BUCKET, "p/")) == ["p/a", "p/b", "p/c"]

    def test_delete_objects_cap(self) -> None:
        store = MemoryObjectStore([TEST_BUCKET], max_delete_batch=2)

        with pytest.raises(StorageError, match="at most 2 keys"):
            store.delete_objects(TEST_BUCKET, ["a", "b", "c"])

    def test_metadata_kept(self, object_store: MemoryObjectStore) -> None:
        object_store.put_object(TEST_BUCKET, "k", b"x", content_type="text/plain", content_encoding="gzip", public=True)

        stored = object_store.head(TEST_BUCKET, "k")

        assert (stored.content_type, stored.content_encoding, stored.public) == ("text/plain", "gzip", True)


class TestObjectStorage:
    def test_put_get_in_default_bucket(self, object_store: MemoryObjectStore) -> None:
        storage = ObjectStorage(object_store, TEST_BUCKET)

        storage.put(Reference.parse("/dir/file.json"), b"{}")

        assert storage.get(Reference.parse("/dir/file.json")) == b"{}"
        assert object_store.head(TEST_BUCKET, "dir/file.json").content_type == "application/json"

    def test_s3_reference_names_bucket(self, object_store: MemoryObjectStore) -> None:
        object_store.create_bucket("other")
        storage = ObjectStorage(object_store, TEST_BUCKET)

        storage.put(Reference.parse("s3://other/k.txt"), "text")

        assert object_store.get_object("other", "k.txt") == b"text"

    def test_public_object(self, object_store: MemoryObjectStore) -> None:
        storage = ObjectStorage(object_store, TEST_BUCKET)

        storage.put(ObjectReference(TEST_BUCKET, "site/index.html", public=True), b"<html/>")

        stored = object_store.head(TEST_BUCKET, "site/index.html")
        assert stored.public
        assert stored.content_type == "text/html"

    def test_delete(self, object_store: MemoryObjectStore) -> None:
        storage = ObjectStorage(object_store, TEST_BUCKET)
        ref = Reference.parse("/k")
        storage.put(ref, b"x")

        storage.delete(ref)

        assert not object_store.exists(TEST_BUCKET, "k")

    def test_find(self, object_store: MemoryObjectStore) -> None:
        storage = ObjectStorage(object_store, TEST_BUCKET)
        storage.put(Reference.parse("/k"), b"x")

        assert storage.find("/k") == Reference.parse(f"s3://{TEST_BUCKET}/k")
        with pytest.raises(NotFoundError):
            storage.find("/missing")

    def test_merge_unsupported(self, object_store: MemoryObjectStore) -> None:
        with pytest.raises(NotSupportedError):
            ObjectStorage(object_store, TEST_BUCKET).merge(Reference.parse("/k"), b"x")

    def test_default_bucket_required(self, object_store: MemoryObjectStore) -> None:
        with pytest.raises(ValueError):
            ObjectStorage(object_store, "")
