# src/strata/combinators/collection.py
"""Append-only record collection with automatic compaction.

A collection is bound to ONE bare reference and stores its records as
gzip-compressed newline-delimited JSON objects under a prefix in an object
store:

    <prefix>/<uuid4>.json.gz     one merge = one object
    {"id": ..., "timestamp": "2024-05-01T12:00:00.123Z", "payload": ...}

get reads every object, de-duplicates records by id and orders them by
(timestamp, id). When more than ``consolidation_threshold`` objects back
the collection, get rewrites them as a single object and deletes the old
keys in batches no larger than the store's bulk-delete cap. The write
happens before the deletes, so a failure part-way leaves duplicates
(removed by id on the next read), never lost records.

No lock is taken around consolidation. Two readers consolidating at once
both write a merged object and both delete the keys they listed; the
merged objects are duplicates of each other and are de-duplicated on read.
A merge landing between another reader's listing and its delete is safe
because only listed keys are deleted. A reader that lists a key another
reader then deletes gets NotFoundError and can simply retry.

The prefix must be non-empty and is owned by the collection. Only
``<prefix>/*.json.gz`` objects directly under it are read or deleted;
anything else in the bucket (including deeper keys) is left alone.
"""

from __future__ import annotations

import gzip
import json
import uuid
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

import structlog

from strata.backends.objectstore import ObjectStore
from strata.contracts.errors import IntegrityError, InvalidReferenceError, NotFoundError
from strata.contracts.payload import to_text
from strata.contracts.records import CollectionRecord
from strata.contracts.reference import Reference
from strata.contracts.storage import BaseStorage

__all__ = ["CONTENT_ENCODING", "CONTENT_TYPE", "DEFAULT_CONSOLIDATION_THRESHOLD", "CollectionStorage", "divide"]

logger = structlog.get_logger(__name__)

DEFAULT_CONSOLIDATION_THRESHOLD = 10
CONTENT_TYPE = "application/json"
CONTENT_ENCODING = "gzip"
OBJECT_SUFFIX = ".json.gz"


def divide(items: Sequence[str], limit: int) -> list[list[str]]:
    """Split items into batches of at most limit by recursive halving.

    Batch sizes differ by at most one within a level, which keeps bulk
    requests evenly sized.
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")
    if not items:
        return []
    if len(items) <= limit:
        return [list(items)]
    middle = len(items) // 2
    return divide(items[:middle], limit) + divide(items[middle:], limit)


def _check_bare(reference: Reference, what: str) -> None:
    if reference.query:
        raise InvalidReferenceError(f"{what} can't have a query: {reference}")
    if reference.fragment is not None:
        raise InvalidReferenceError(f"{what} can't have a fragment: {reference}")
    if reference.authority:
        raise InvalidReferenceError(f"{what} can't have an authority: {reference}")


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _json_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _json_value(item) for key, item in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, str | bytes | bytearray | memoryview):
        return [_json_value(item) for item in value]
    return value


def _payload_value(payload: object) -> Any:
    """Mappings and sequences become JSON objects and arrays; bytes and streams UTF-8 text."""
    if payload is None or isinstance(payload, str | int | float | bool):
        return payload
    if isinstance(payload, Mapping | Sequence) and not isinstance(payload, bytes | bytearray | memoryview):
        return _json_value(payload)
    return to_text(payload)


class CollectionStorage(BaseStorage):
    """Compacting event log bound to one reference.

    merge appends a record, get returns the ordered payloads. Any other
    bare reference is NotFoundError; put and delete are unsupported.
    """

    def __init__(
        self,
        object_store: ObjectStore,
        bucket: str,
        reference: Reference,
        *,
        prefix: str,
        consolidation_threshold: int = DEFAULT_CONSOLIDATION_THRESHOLD,
        delete_batch_size: int | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if not bucket:
            raise ValueError("collection needs a bucket")
        if prefix.startswith("/"):
            raise ValueError("collection prefix can't start with '/'")
        if not prefix.strip("/"):
            raise ValueError("collection needs a non-empty prefix: it owns every object under it")
        if consolidation_threshold < 1:
            raise ValueError(f"consolidation_threshold must be > 0, got {consolidation_threshold}")
        _check_bare(reference, "collection reference")

        self._store = object_store
        self._bucket = bucket
        self._reference = reference
        self._prefix = prefix
        self._list_prefix = prefix.rstrip("/") + "/"
        self._threshold = consolidation_threshold
        self._batch_size = min(delete_batch_size or object_store.max_delete_batch, object_store.max_delete_batch)
        self._clock = clock

    @property
    def reference(self) -> Reference:
        return self._reference

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def consolidation_threshold(self) -> int:
        return self._threshold

    def _resolve(self, reference: Reference) -> None:
        _check_bare(reference, "reference")
        if reference != self._reference:
            raise NotFoundError(reference, detail=f"collection is bound to {self._reference}")

    def _owns(self, key: str) -> bool:
        name = key[len(self._list_prefix) :]
        return key.startswith(self._list_prefix) and "/" not in name and name.endswith(OBJECT_SUFFIX)

    def _new_key(self) -> str:
        return f"{self._list_prefix}{uuid.uuid4()}{OBJECT_SUFFIX}"

    def _serialize(self, records: Iterable[CollectionRecord]) -> bytes:
        lines = (json.dumps(r.to_dict(), ensure_ascii=False, separators=(",", ":")) + "\n" for r in records)
        return gzip.compress("".join(lines).encode("utf-8"))

    def _store_records(self, records: Sequence[CollectionRecord]) -> str:
        if not records:
            raise ValueError("nothing to store")
        key = self._new_key()
        self._store.put_object(
            self._bucket,
            key,
            self._serialize(records),
            content_type=CONTENT_TYPE,
            content_encoding=CONTENT_ENCODING,
        )
        return key

    def _load(self, key: str) -> list[CollectionRecord]:
        try:
            text = gzip.decompress(self._store.get_object(self._bucket, key)).decode("utf-8")
            return [CollectionRecord.from_dict(json.loads(line)) for line in text.splitlines() if line.strip()]
        except (OSError, EOFError, ValueError, KeyError, TypeError) as e:
            raise IntegrityError(f"corrupt collection object {key!r}: {e}") from e

    def merge(self, reference: Reference, payload: object) -> None:
        self._resolve(reference)
        record = CollectionRecord(id=str(uuid.uuid4()), timestamp=self._clock(), payload=_payload_value(payload))
        key = self._store_records([record])
        logger.debug("collection_record_stored", reference=str(reference), key=key, record_id=record.id)

    def records(self) -> list[CollectionRecord]:
        """All records, de-duplicated by id and ordered by (timestamp, id).

        Consolidates the backing objects when there are more than the threshold.
        """
        keys: list[str] = []
        by_id: dict[str, CollectionRecord] = {}
        for key in self._store.list_keys(self._bucket, self._list_prefix):
            if not self._owns(key):
                continue
            keys.append(key)
            for record in self._load(key):
                by_id[record.id] = record

        ordered = sorted(by_id.values(), key=lambda r: (r.timestamp, r.id))
        if len(keys) > self._threshold:
            self._consolidate(keys, ordered)
        return ordered

    def _consolidate(self, keys: list[str], records: list[CollectionRecord]) -> None:
        logger.info("collection_consolidating", reference=str(self._reference), objects=len(keys), records=len(records))
        new_key = self._store_records(records)
        for batch in divide(keys, self._batch_size):
            self._store.delete_objects(self._bucket, batch)
        logger.info("collection_consolidated", reference=str(self._reference), key=new_key)

    def get(self, reference: Reference) -> list[Any]:
        self._resolve(reference)
        return [record.payload for record in self.records()]
