# src/strata/combinators/versioning.py
"""Version chains over any storage.

Every put at a reference creates a new immutable version; nothing is
overwritten. The version index (newline-delimited VersionRecord JSON) lives
at the caller's reference itself, and each version's payload lives at a
target derived from (reference, version, salt):

    /.versions/<base58(md5(canonical_json([reference, version, salt])))>

Targets are plain path references, so they map to object keys on S3 or
Azure the same way caller references do. A bucket-addressed reference
(``s3://bucket/...``) keeps its scheme and bucket. The ``/.versions/``
prefix is owned by this combinator: callers can't read or write under it,
which keeps payload targets from colliding with caller keys.

Selectors (URI fragment, optionally with a ``version`` query parameter):

    ref                     payload of the latest version
    ref#versions            the Versions index
    ref?version=N#versions  payload of version N
    ref#version=N           payload of version N (legacy form)

KNOWN RACE: put is load-index, store-payload, rewrite-index with no lock.
Two concurrent writers to one reference can both compute the same next
version and one index rewrite is lost. Serialize writers per reference if
that matters.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog

from strata.contracts.errors import InvalidReferenceError, NotFoundError, ReservedReferenceError
from strata.contracts.payload import to_bytes
from strata.contracts.records import Versions
from strata.contracts.reference import Reference
from strata.contracts.storage import BaseStorage, Storage, unsupported
from strata.core.canonical import canonical_json
from strata.core.hashing import compute_digest

__all__ = ["VERSIONS_PREFIX", "VersioningStorage", "version_target"]

logger = structlog.get_logger(__name__)

VERSIONS_PREFIX = "/.versions/"
VERSION_QUERY_KEY = "version"

# Fixed salt so version targets can't be derived from the reference alone
_TARGET_SALT = "D6871E1B-4C52-423B-B526-1F2D82D1C996"

_SELECTOR = re.compile(r"^(?:(?P<versions>versions)|version=(?P<number>\d+))$")


def version_target(reference: Reference, version: int) -> Reference:
    """Deterministic storage target for one version of reference."""
    digest = compute_digest("md5", canonical_json([str(reference), version, _TARGET_SALT]))
    path = f"{VERSIONS_PREFIX}{digest.encoded}"
    if reference.authority is not None:
        return Reference(scheme=reference.scheme, authority=reference.authority, path=path)
    return Reference(path=path)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class VersioningStorage(BaseStorage):
    """Decorator adding an append-only version chain to every reference.

    delete and merge are unsupported: history is append-only.
    """

    def __init__(self, inner: Storage, *, clock: Callable[[], datetime] = _utc_now) -> None:
        self._inner = inner
        self._clock = clock

    def _check_owned(self, reference: Reference) -> None:
        if reference.path.startswith(VERSIONS_PREFIX):
            raise ReservedReferenceError(reference, owner=type(self).__name__)

    def _load(self, index_reference: Reference) -> Versions:
        return Versions.from_ndjson(to_bytes(self._inner.get(index_reference)))

    def versions(self, reference: Reference) -> Versions:
        """Version index for reference (empty if it was never written)."""
        self._check_owned(reference)
        try:
            return self._load(reference.without_fragment().without_query_key(VERSION_QUERY_KEY))
        except NotFoundError:
            return Versions()

    def get(self, reference: Reference) -> Any:
        """Resolve a selector.

        Raises:
            NotFoundError: If there is no such version (or no versions at all)
            InvalidReferenceError: If the fragment isn't a version selector
            IntegrityError: If the stored index is corrupt
        """
        self._check_owned(reference)
        fragment = reference.fragment
        if not fragment:
            versions = self.versions(reference)
            if not versions:
                raise NotFoundError(reference, detail="no versions")
            return self._inner.get(versions.latest.target)

        match = _SELECTOR.match(fragment)
        if match is None:
            raise InvalidReferenceError(f"unrecognized version selector #{fragment} in {reference}")

        if match.group("versions"):
            selected = reference.query_value(VERSION_QUERY_KEY)
            if selected is None:
                return self.versions(reference)
            if not selected.isdigit():
                raise InvalidReferenceError(f"version must be a positive integer, got {selected!r}")
            number = int(selected)
        else:
            number = int(match.group("number"))

        versions = self.versions(reference)
        try:
            record = versions.find(number)
        except NotFoundError:
            raise NotFoundError(reference, detail=f"no version {number}") from None
        return self._inner.get(record.target)

    def put(self, reference: Reference, payload: object) -> None:
        """Store payload as the next version of reference.

        Raises:
            InvalidReferenceError: If reference carries a fragment or version selector
            ReservedReferenceError: If reference is under the versions prefix
        """
        self._check_owned(reference)
        if reference.fragment is not None:
            raise InvalidReferenceError(f"can't put to a version selector: {reference}")
        if reference.query_values(VERSION_QUERY_KEY):
            raise InvalidReferenceError(f"can't put to a specific version: {reference}")

        versions = self.versions(reference)
        number = versions.max_version + 1
        target = version_target(reference, number)

        self._inner.put(target, payload)
        versions = versions.appended(reference, target, self._clock())
        self._inner.put(reference, versions.to_ndjson())
        logger.debug("version_written", reference=str(reference), version=number, target=str(target))

    def delete(self, reference: Reference) -> None:
        raise unsupported(self, "delete", "version history is append-only")

    def merge(self, reference: Reference, payload: object) -> None:
        raise unsupported(self, "merge", "version history is append-only")
