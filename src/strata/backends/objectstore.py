# src/strata/backends/objectstore.py
"""Object store abstraction and the Storage backend built on it.

An ObjectStore is the narrow bucket/key interface that S3 and Azure Blob
share. CollectionStorage and ObjectStorage are written against it, so the
same combinator runs against S3, Azure or the in-memory store used in tests.

Adapters translate their SDK's "missing" conditions to NotFoundError and
wrap everything else in StorageError. Nothing above this layer sees SDK
exception types.
"""

from __future__ import annotations

import mimetypes
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from threading import Lock
from typing import Protocol, runtime_checkable

from strata.contracts.errors import NotFoundError, StorageError
from strata.contracts.payload import to_bytes
from strata.contracts.reference import ObjectReference, Reference
from strata.contracts.storage import BaseStorage

__all__ = [
    "MAX_DELETE_BATCH",
    "MemoryObjectStore",
    "ObjectStorage",
    "ObjectStore",
    "StoredObject",
]

# S3 DeleteObjects accepts at most this many keys per request
MAX_DELETE_BATCH = 1000


@runtime_checkable
class ObjectStore(Protocol):
    """Bucket/key object storage.

    ``max_delete_batch`` is the largest number of keys ``delete_objects``
    accepts in one call.
    """

    max_delete_batch: int

    def get_object(self, bucket: str, key: str) -> bytes:
        """Read a whole object.

        Raises:
            NotFoundError: If the bucket or key does not exist
        """
        ...

    def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
        content_encoding: str | None = None,
        public: bool = False,
    ) -> None: ...

    def delete_object(self, bucket: str, key: str) -> None: ...

    def delete_objects(self, bucket: str, keys: Sequence[str]) -> None:
        """Delete up to ``max_delete_batch`` keys in one request."""
        ...

    def list_keys(self, bucket: str, prefix: str) -> Iterator[str]:
        """Yield every key under prefix, following pagination."""
        ...

    def exists(self, bucket: str, key: str) -> bool: ...


@dataclass(frozen=True, slots=True)
class StoredObject:
    """Object body plus the metadata an object store keeps alongside it."""

    data: bytes
    content_type: str | None = None
    content_encoding: str | None = None
    public: bool = False


class MemoryObjectStore:
    """In-process ObjectStore with S3 semantics.

    Buckets must be created up front; reading from an unknown bucket is a
    NotFoundError, like NoSuchBucket. Listing is lexicographic and paginated
    by ``page_size`` to exercise callers' pagination handling.
    """

    def __init__(
        self,
        buckets: Sequence[str] = (),
        *,
        page_size: int = 1000,
        max_delete_batch: int = MAX_DELETE_BATCH,
    ) -> None:
        self._buckets: dict[str, dict[str, StoredObject]] = {name: {} for name in buckets}
        self._lock = Lock()
        self.page_size = page_size
        self.max_delete_batch = max_delete_batch
        self.delete_batches: list[list[str]] = []

    def create_bucket(self, bucket: str) -> None:
        with self._lock:
            self._buckets.setdefault(bucket, {})

    def _bucket(self, bucket: str) -> dict[str, StoredObject]:
        try:
            return self._buckets[bucket]
        except KeyError:
            raise NotFoundError(detail=f"no such bucket {bucket!r}") from None

    def get_object(self, bucket: str, key: str) -> bytes:
        return self.head(bucket, key).data

    def head(self, bucket: str, key: str) -> StoredObject:
        """Object body and metadata."""
        with self._lock:
            try:
                return self._bucket(bucket)[key]
            except KeyError:
                raise NotFoundError(ObjectReference(bucket, key).to_reference(), detail="no such key") from None

    def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
        content_encoding: str | None = None,
        public: bool = False,
    ) -> None:
        with self._lock:
            self._bucket(bucket)[key] = StoredObject(
                data=bytes(data),
                content_type=content_type,
                content_encoding=content_encoding,
                public=public,
            )

    def delete_object(self, bucket: str, key: str) -> None:
        # S3 DeleteObject succeeds for absent keys
        with self._lock:
            self._bucket(bucket).pop(key, None)

    def delete_objects(self, bucket: str, keys: Sequence[str]) -> None:
        if len(keys) > self.max_delete_batch:
            raise StorageError(f"delete_objects accepts at most {self.max_delete_batch} keys, got {len(keys)}")
        with self._lock:
            objects = self._bucket(bucket)
            for key in keys:
                objects.pop(key, None)
            self.delete_batches.append(list(keys))

    def list_keys(self, bucket: str, prefix: str) -> Iterator[str]:
        with self._lock:
            keys = sorted(k for k in self._bucket(bucket) if k.startswith(prefix))
        for start in range(0, len(keys), self.page_size):
            yield from keys[start : start + self.page_size]

    def exists(self, bucket: str, key: str) -> bool:
        with self._lock:
            return key in self._bucket(bucket)


class ObjectStorage(BaseStorage):
    """Storage over an ObjectStore.

    References are mapped with ObjectReference.from_reference: an
    ``s3://bucket/key`` reference names its own bucket, anything else lands
    in default_bucket with its path as the key. Content type is guessed
    from the key's extension.

    merge is not supported: object stores have no append.
    """

    def __init__(self, object_store: ObjectStore, default_bucket: str) -> None:
        if not default_bucket:
            raise ValueError("ObjectStorage needs a default bucket")
        self._store = object_store
        self._default_bucket = default_bucket

    def object_reference(self, reference: Reference | ObjectReference) -> ObjectReference:
        if isinstance(reference, ObjectReference):
            return reference
        return ObjectReference.from_reference(reference, default_bucket=self._default_bucket)

    def get(self, reference: Reference | ObjectReference) -> bytes:  # type: ignore[override]
        ref = self.object_reference(reference)
        return self._store.get_object(ref.bucket, ref.key)

    def put(self, reference: Reference | ObjectReference, payload: object) -> None:  # type: ignore[override]
        data = to_bytes(payload)
        ref = self.object_reference(reference)
        content_type, _ = mimetypes.guess_type(ref.key)
        self._store.put_object(ref.bucket, ref.key, data, content_type=content_type, public=ref.public)

    def delete(self, reference: Reference | ObjectReference) -> None:  # type: ignore[override]
        ref = self.object_reference(reference)
        self._store.delete_object(ref.bucket, ref.key)

    def find(self, name: str) -> Reference:
        """Resolve name to an object reference after checking it exists.

        Raises:
            NotFoundError: If no object exists at name
        """
        ref = self.object_reference(Reference.parse(name))
        if not self._store.exists(ref.bucket, ref.key):
            raise NotFoundError(ref.to_reference())
        return ref.to_reference()
