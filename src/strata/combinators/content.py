# src/strata/combinators/content.py
"""Content-addressed storage with integrity enforcement.

Accepts only hash references (``md5:<base58>``, ``shake256:<base58>``).
Content is verified on BOTH sides:

- put: the payload must hash to the reference, or the inner store is never
  called.
- get: content read back must still hash to the reference; corruption or
  tampering in the inner store raises IntegrityError instead of returning
  bad data.

delete and merge are unsupported: content-addressed data is immutable.
"""

from __future__ import annotations

from strata.contracts.errors import IntegrityError
from strata.contracts.payload import to_bytes
from strata.contracts.reference import Reference
from strata.contracts.storage import BaseStorage, Storage
from strata.core.hashing import HashReference, compute_digest

__all__ = ["ContentHasher", "content_reference"]


def content_reference(payload: object, algorithm: str = "md5") -> Reference:
    """Hash reference a payload would be stored under."""
    return compute_digest(algorithm, to_bytes(payload)).to_reference()


class ContentHasher(BaseStorage):
    """Decorator enforcing that content matches its hash reference."""

    def __init__(self, inner: Storage) -> None:
        self._inner = inner

    def get(self, reference: Reference) -> bytes:
        """Fetch and verify.

        Raises:
            InvalidReferenceError: If reference is not a supported hash reference
            IntegrityError: If stored content doesn't match the digest
        """
        expected = HashReference.from_reference(reference)
        data = to_bytes(self._inner.get(reference))
        if not expected.matches(data):
            actual = compute_digest(expected.algorithm, data)
            raise IntegrityError(f"content integrity check failed: expected {expected}, got {actual}")
        return data

    def put(self, reference: Reference, payload: object) -> None:
        """Verify then store.

        Raises:
            InvalidReferenceError: If reference is not a supported hash reference
            IntegrityError: If payload doesn't hash to reference
        """
        expected = HashReference.from_reference(reference)
        data = to_bytes(payload)
        if not expected.matches(data):
            actual = compute_digest(expected.algorithm, data)
            raise IntegrityError(f"content does not match reference: expected {expected}, got {actual}")
        self._inner.put(reference, data)
