# src/strata/combinators/appender.py
"""Append semantics for stores that only support put.

merge(ref, payload) becomes get + concatenate + put. Like versioning this
is a read-modify-write without a lock: concurrent appenders to one
reference can lose data.
"""

from __future__ import annotations

from typing import Any

from strata.contracts.errors import NotFoundError
from strata.contracts.payload import to_bytes
from strata.contracts.reference import Reference
from strata.contracts.storage import BaseStorage, Storage, find_in

__all__ = ["AppendingStorage"]


class AppendingStorage(BaseStorage):
    """Decorator implementing merge as byte append."""

    def __init__(self, inner: Storage) -> None:
        self._inner = inner

    def merge(self, reference: Reference, payload: object) -> None:
        try:
            existing = to_bytes(self._inner.get(reference))
        except NotFoundError:
            existing = b""
        self._inner.put(reference, existing + to_bytes(payload))

    def get(self, reference: Reference) -> Any:
        return self._inner.get(reference)

    def put(self, reference: Reference, payload: object) -> None:
        self._inner.put(reference, payload)

    def delete(self, reference: Reference) -> None:
        self._inner.delete(reference)

    def find(self, name: str) -> Reference:
        return find_in(self._inner, name)
