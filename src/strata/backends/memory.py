# src/strata/backends/memory.py
"""In-memory storage backend.

Keys are canonical reference strings, so references that differ only in
query order address the same entry.
"""

from __future__ import annotations

from threading import Lock
from typing import Any

from strata.contracts.errors import NotFoundError
from strata.contracts.reference import Reference
from strata.contracts.storage import BaseStorage

__all__ = ["MemoryStorage"]


class MemoryStorage(BaseStorage):
    """Thread-safe map from reference to payload.

    Payloads are stored as given (no normalization), which makes this the
    natural inner store for tests and for caching decoded values.
    """

    def __init__(self) -> None:
        self._items: dict[str, Any] = {}
        self._lock = Lock()

    def get(self, reference: Reference) -> Any:
        with self._lock:
            try:
                return self._items[str(reference)]
            except KeyError:
                raise NotFoundError(reference) from None

    def put(self, reference: Reference, payload: Any) -> None:
        with self._lock:
            self._items[str(reference)] = payload

    def delete(self, reference: Reference) -> None:
        with self._lock:
            try:
                del self._items[str(reference)]
            except KeyError:
                raise NotFoundError(reference) from None

    def find(self, name: str) -> Reference:
        return Reference.from_path(name)

    def __contains__(self, reference: object) -> bool:
        with self._lock:
            return str(reference) in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def keys(self) -> list[str]:
        """Canonical strings of every stored reference."""
        with self._lock:
            return sorted(self._items)
