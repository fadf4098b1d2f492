# src/strata/combinators/read_only.py
"""Read-only view of a store."""

from __future__ import annotations

from typing import Any

from strata.contracts.errors import ReadOnlyError
from strata.contracts.reference import Reference
from strata.contracts.storage import BaseStorage, Storage, find_in

__all__ = ["ReadOnlyStorage"]


class ReadOnlyStorage(BaseStorage):
    """get and find pass through; every mutation raises ReadOnlyError."""

    def __init__(self, inner: Storage) -> None:
        self._inner = inner

    def get(self, reference: Reference) -> Any:
        return self._inner.get(reference)

    def find(self, name: str) -> Reference:
        return find_in(self._inner, name)

    def put(self, reference: Reference, payload: object) -> None:
        raise ReadOnlyError(f"put to read-only storage: {reference}")

    def delete(self, reference: Reference) -> None:
        raise ReadOnlyError(f"delete from read-only storage: {reference}")

    def merge(self, reference: Reference, payload: object) -> None:
        raise ReadOnlyError(f"merge into read-only storage: {reference}")
