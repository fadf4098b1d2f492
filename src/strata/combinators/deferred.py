# src/strata/combinators/deferred.py
"""Lazy initialization of an expensive backend.

The factory runs on first use, exactly once, under a lock. Concurrent first
callers block until that one build finishes. A factory that raises leaves
the wrapper uninitialized so the next call tries again.
"""

from __future__ import annotations

from collections.abc import Callable
from threading import Lock
from typing import Any

import structlog

from strata.contracts.reference import Reference
from strata.contracts.storage import BaseStorage, Storage, find_in

__all__ = ["DeferredStorage"]

logger = structlog.get_logger(__name__)


class DeferredStorage(BaseStorage):
    """Storage whose backend is built by factory on first use."""

    def __init__(self, factory: Callable[[], Storage]) -> None:
        self._factory = factory
        self._storage: Storage | None = None
        self._lock = Lock()

    @property
    def initialized(self) -> bool:
        return self._storage is not None

    def initialize(self) -> Storage:
        """Build the backend now if it isn't built yet."""
        storage = self._storage
        if storage is not None:
            return storage
        with self._lock:
            if self._storage is None:
                logger.debug("deferred_storage_initializing", factory=getattr(self._factory, "__name__", repr(self._factory)))
                self._storage = self._factory()
            return self._storage

    def get(self, reference: Reference) -> Any:
        return self.initialize().get(reference)

    def put(self, reference: Reference, payload: object) -> None:
        self.initialize().put(reference, payload)

    def delete(self, reference: Reference) -> None:
        self.initialize().delete(reference)

    def merge(self, reference: Reference, payload: object) -> None:
        self.initialize().merge(reference, payload)

    def find(self, name: str) -> Reference:
        return find_in(self.initialize(), name)
