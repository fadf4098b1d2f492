# src/strata/combinators/cache.py
"""Read/write-through cache over a fast and an authoritative tier.

Coherence rule: after any successful mutation through the cache, the fast
tier holds exactly what the authoritative tier returns for that reference
(or nothing). Values are always re-read from the authoritative tier rather
than copied from the caller's payload, so a backend that transforms on
write (encryption, versioning, appending) is cached as it reads back.

A decorator below the cache may expose several views of one stored key
(``doc``, ``doc#versions``, ``doc?version=2#versions``). Views share a base
reference (no query, no fragment); every view cached through this instance
is dropped when any reference with the same base is mutated.

Failures are not retried and not rolled back. A mutation that fails after
invalidation leaves the fast tier empty, which is still coherent.
"""

from __future__ import annotations

from contextlib import suppress
from threading import Lock
from typing import Any

import structlog

from strata.contracts.errors import NotFoundError, StorageError
from strata.contracts.reference import Reference
from strata.contracts.storage import BaseStorage, Storage, find_in

__all__ = ["CacheStorage"]

logger = structlog.get_logger(__name__)


def _view_base(reference: Reference) -> Reference:
    return reference.without_query().without_fragment()


class CacheStorage(BaseStorage):
    """Decorator caching an authoritative store in a fast one."""

    def __init__(self, fast: Storage, authoritative: Storage) -> None:
        self._fast = fast
        self._authoritative = authoritative
        self._views: dict[Reference, set[Reference]] = {}
        self._lock = Lock()

    def _remember(self, reference: Reference) -> None:
        with self._lock:
            self._views.setdefault(_view_base(reference), set()).add(reference)

    def get(self, reference: Reference) -> Any:
        try:
            return self._fast.get(reference)
        except StorageError as e:
            logger.debug("cache_miss", reference=str(reference), reason=type(e).__name__)

        value = self._authoritative.get(reference)
        self._fast.put(reference, value)
        self._remember(reference)
        logger.debug("cache_populated", reference=str(reference))
        # Serve from the fast tier so callers see the cached form
        return self._fast.get(reference)

    def _invalidate(self, reference: Reference) -> None:
        with self._lock:
            stale = self._views.pop(_view_base(reference), set())
        stale.add(reference)
        for view in stale:
            # A missing entry is already invalidated
            with suppress(NotFoundError):
                self._fast.delete(view)
        if len(stale) > 1:
            logger.debug("cache_views_invalidated", reference=str(reference), views=len(stale))

    def _refresh(self, reference: Reference) -> None:
        self._fast.put(reference, self._authoritative.get(reference))
        self._remember(reference)

    def put(self, reference: Reference, payload: object) -> None:
        self._invalidate(reference)
        self._authoritative.put(reference, payload)
        self._refresh(reference)

    def merge(self, reference: Reference, payload: object) -> None:
        self._invalidate(reference)
        self._authoritative.merge(reference, payload)
        self._refresh(reference)

    def delete(self, reference: Reference) -> None:
        self._invalidate(reference)
        self._authoritative.delete(reference)

    def find(self, name: str) -> Reference:
        try:
            return find_in(self._fast, name)
        except StorageError:
            return find_in(self._authoritative, name)
