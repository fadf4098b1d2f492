# src/strata/core/hashing.py
"""Content digests and hash references.

A hash reference binds a reference's identity to the digest of its content:

    <algorithm>:<base58(digest)>     e.g. md5:4vJ9JU1bJJE96FWSJKvHsmmFADCg4gpZQff4P3bkLKi

Base58 (Bitcoin alphabet) avoids characters that are problematic for both
people and filesystems.

The algorithm set is fixed and explicit. An unknown algorithm name is an
error, never a silent fallback.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass

import base58

from strata.contracts.enums import HashAlgorithm
from strata.contracts.errors import InvalidReferenceError
from strata.contracts.reference import Reference

__all__ = [
    "DEFAULT_ALGORITHM",
    "HashReference",
    "compute_digest",
    "digests_match",
    "encode_reference",
]

DEFAULT_ALGORITHM = HashAlgorithm.MD5

# Digest sizes in bytes. SHAKE256 is an XOF; we always draw 512 bits.
_DIGEST_SIZES: dict[HashAlgorithm, int] = {
    HashAlgorithm.MD5: 16,
    HashAlgorithm.SHAKE256: 64,
}


def _algorithm(name: str) -> HashAlgorithm:
    try:
        return HashAlgorithm(name.lower())
    except ValueError:
        raise InvalidReferenceError(f"unsupported hash algorithm {name!r}; expected one of {[a.value for a in HashAlgorithm]}") from None


def _digest_bytes(algorithm: HashAlgorithm, data: bytes) -> bytes:
    if algorithm is HashAlgorithm.SHAKE256:
        return hashlib.shake_256(data).digest(_DIGEST_SIZES[algorithm])
    return hashlib.md5(data, usedforsecurity=False).digest()


@dataclass(frozen=True, slots=True)
class HashReference:
    """Algorithm plus digest bytes; the hash-addressed variant of Reference."""

    algorithm: HashAlgorithm
    digest: bytes

    def __post_init__(self) -> None:
        expected = _DIGEST_SIZES[self.algorithm]
        if len(self.digest) != expected:
            raise InvalidReferenceError(f"{self.algorithm.value} digest must be {expected} bytes, got {len(self.digest)}")

    @property
    def encoded(self) -> str:
        """Base58 form of the digest."""
        return base58.b58encode(self.digest).decode("ascii")

    def to_reference(self) -> Reference:
        return Reference(scheme=self.algorithm.value, opaque=self.encoded)

    @classmethod
    def from_reference(cls, reference: Reference) -> HashReference:
        """Parse ``<algorithm>:<base58>``.

        Raises:
            InvalidReferenceError: If the scheme isn't a supported algorithm,
                the value isn't base58, or the digest has the wrong length
        """
        algorithm = _algorithm(reference.scheme)
        if reference.opaque is None or reference.query or reference.fragment is not None:
            raise InvalidReferenceError(f"hash reference must be of form <algorithm>:<base58>, got {reference}")
        try:
            digest = base58.b58decode(reference.opaque)
        except ValueError as e:
            raise InvalidReferenceError(f"hash reference value is not base58: {reference.opaque!r}") from e
        return cls(algorithm=algorithm, digest=digest)

    @classmethod
    def parse(cls, text: str) -> HashReference:
        return cls.from_reference(Reference.parse(text))

    def matches(self, data: bytes) -> bool:
        """Whether data hashes to this reference's digest (constant-time compare)."""
        return digests_match(self.digest, _digest_bytes(self.algorithm, data))

    def __str__(self) -> str:
        return f"{self.algorithm.value}:{self.encoded}"


def compute_digest(algorithm: HashAlgorithm | str, data: bytes) -> HashReference:
    """Hash data with the named algorithm.

    Raises:
        InvalidReferenceError: If the algorithm is not supported
    """
    algo = algorithm if isinstance(algorithm, HashAlgorithm) else _algorithm(algorithm)
    return HashReference(algorithm=algo, digest=_digest_bytes(algo, data))


def digests_match(expected: bytes, actual: bytes) -> bool:
    # Timing-safe comparison, same as the payload integrity checks
    return hmac.compare_digest(expected, actual)


def encode_reference(reference: Reference, algorithm: HashAlgorithm = DEFAULT_ALGORITHM) -> Reference:
    """Map a reference to the hash reference of its canonical string.

    Used to give arbitrary references a flat, filesystem-safe key.
    """
    return compute_digest(algorithm, str(reference).encode("utf-8")).to_reference()
