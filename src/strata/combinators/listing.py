# src/strata/combinators/listing.py
"""Operation logs kept beside a store.

Both combinators write a LogRecord (one JSON line) into a log store via
merge BEFORE performing the operation, so an operation with no record
never happened through this combinator. If the operation then fails, the
record stays: the log lists attempts, not successes.

- ListingStorage records mutations (put/delete/merge) and passes
  references through unchanged.
- AuditLogStorage records every operation including get, and stores
  content at the hash of the caller's reference so the backing key space
  reveals nothing about caller names.

The log reference is owned by the combinator; mutations addressed at it
are rejected with ReservedReferenceError.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from strata.contracts.enums import HashAlgorithm, Operation
from strata.contracts.errors import ReservedReferenceError
from strata.contracts.records import LogRecord
from strata.contracts.reference import Reference
from strata.contracts.storage import BaseStorage, Storage, find_in
from strata.core.hashing import DEFAULT_ALGORITHM, encode_reference

__all__ = ["AuditLogStorage", "ListingStorage"]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class _LoggedStorage(BaseStorage):
    def __init__(self, log: Storage, log_reference: Reference | str, clock: Callable[[], datetime]) -> None:
        self._log = log
        if isinstance(log_reference, str):
            # A bare name is resolved through the log store's naming facility
            self._log_name: str | None = log_reference
            self._log_reference = find_in(log, log_reference)
        else:
            self._log_name = None
            self._log_reference = log_reference
        self._clock = clock

    @property
    def log_reference(self) -> Reference:
        return self._log_reference

    def _is_log(self, reference: Reference) -> bool:
        return reference == self._log_reference

    def _reject_log(self, reference: Reference) -> None:
        if self._is_log(reference):
            raise ReservedReferenceError(reference, owner=type(self).__name__)

    def _record(self, operation: Operation, source: Reference, target: Reference | None = None) -> None:
        record = LogRecord(
            id=str(uuid.uuid4()),
            timestamp=self._clock(),
            operation=operation,
            source=source,
            target=target,
        )
        self._log.merge(self._log_reference, record.to_dict())


class ListingStorage(_LoggedStorage):
    """Decorator keeping a listing of every mutation of raw.

    get of the log reference returns the log; find of the log name returns
    the log reference.
    """

    def __init__(
        self,
        raw: Storage,
        log: Storage,
        log_reference: Reference | str,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        super().__init__(log, log_reference, clock)
        self._raw = raw

    def find(self, name: str) -> Reference:
        if name == self._log_name or name == str(self._log_reference):
            return self._log_reference
        return find_in(self._raw, name)

    def get(self, reference: Reference) -> Any:
        if self._is_log(reference):
            return self._log.get(reference)
        return self._raw.get(reference)

    def put(self, reference: Reference, payload: object) -> None:
        self._reject_log(reference)
        self._record(Operation.PUT, reference)
        self._raw.put(reference, payload)

    def delete(self, reference: Reference) -> None:
        self._reject_log(reference)
        self._record(Operation.DELETE, reference)
        self._raw.delete(reference)

    def merge(self, reference: Reference, payload: object) -> None:
        self._reject_log(reference)
        self._record(Operation.MERGE, reference)
        self._raw.merge(reference, payload)


class AuditLogStorage(_LoggedStorage):
    """Decorator that logs every operation and hides caller references.

    Content for reference R is stored at encode_reference(R), the hash
    reference of R's canonical string. Each LogRecord carries both R
    (source) and the hashed key (target), which is the only place the two
    are linked.
    """

    def __init__(
        self,
        storage: Storage,
        log: Storage,
        log_reference: Reference | str,
        *,
        algorithm: HashAlgorithm = DEFAULT_ALGORITHM,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        super().__init__(log, log_reference, clock)
        self._storage = storage
        self._algorithm = algorithm

    def target_for(self, reference: Reference) -> Reference:
        return encode_reference(reference, self._algorithm)

    def get(self, reference: Reference) -> Any:
        if self._is_log(reference):
            return self._log.get(reference)
        target = self.target_for(reference)
        self._record(Operation.GET, reference, target)
        return self._storage.get(target)

    def put(self, reference: Reference, payload: object) -> None:
        self._reject_log(reference)
        target = self.target_for(reference)
        self._record(Operation.PUT, reference, target)
        self._storage.put(target, payload)

    def delete(self, reference: Reference) -> None:
        self._reject_log(reference)
        target = self.target_for(reference)
        self._record(Operation.DELETE, reference, target)
        self._storage.delete(target)

    def merge(self, reference: Reference, payload: object) -> None:
        self._reject_log(reference)
        target = self.target_for(reference)
        self._record(Operation.MERGE, reference, target)
        self._storage.merge(target, payload)
