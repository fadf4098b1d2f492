# src/strata/combinators/encoded.py
"""Flatten arbitrary references into a hash key space."""

from __future__ import annotations

from typing import Any

from strata.contracts.enums import HashAlgorithm
from strata.contracts.reference import Reference
from strata.contracts.storage import BaseStorage, Storage
from strata.core.hashing import DEFAULT_ALGORITHM, encode_reference

__all__ = ["EncodedReferences"]


class EncodedReferences(BaseStorage):
    """Decorator mapping every reference to the hash of its canonical string.

    Useful in front of stores with restricted key syntax (filesystems,
    object stores): ``https://example.com/a?b=1`` is stored at
    ``md5:<base58>``. The mapping is one-way; the inner store can't list
    the caller's references.
    """

    def __init__(self, inner: Storage, algorithm: HashAlgorithm = DEFAULT_ALGORITHM) -> None:
        self._inner = inner
        self._algorithm = HashAlgorithm(algorithm)

    def encode(self, reference: Reference) -> Reference:
        return encode_reference(reference, self._algorithm)

    def get(self, reference: Reference) -> Any:
        return self._inner.get(self.encode(reference))

    def put(self, reference: Reference, payload: object) -> None:
        self._inner.put(self.encode(reference), payload)

    def delete(self, reference: Reference) -> None:
        self._inner.delete(self.encode(reference))

    def merge(self, reference: Reference, payload: object) -> None:
        self._inner.merge(self.encode(reference), payload)
