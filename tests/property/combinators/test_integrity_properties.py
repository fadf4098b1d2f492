# tests/property/combinators/test_integrity_properties.py
"""Property-based tests for content hashing and envelope encryption.

Both combinators promise the same thing from opposite directions: bytes
that come back out are exactly the bytes that went in, and anything else
is an error rather than silently wrong data.
"""

from __future__ import annotations

import pytest
from hypothesis import assume, given, settings
from hypothesis import strategies as st

from strata.backends.kms import LocalKeyManagementClient
from strata.backends.memory import MemoryStorage
from strata.combinators.content import ContentHasher, content_reference
from strata.combinators.encrypter import EncryptingStorage
from strata.contracts.errors import DecryptionError, IntegrityError, KeyManagementError
from strata.contracts.reference import Reference

# =============================================================================
# Strategies
# =============================================================================

payloads = st.binary(max_size=2048)
algorithms = st.sampled_from(["md5", "shake256"])

# Module-level: @given tests can't use function-scoped fixtures
_KMS = LocalKeyManagementClient(bytes(range(32)))


class TestContentHashProperties:
    """Property: get(put(ref(x), x)) == x, and only x is accepted at ref(x)."""

    @given(data=payloads, algorithm=algorithms)
    @settings(max_examples=200)
    def test_round_trip(self, data: bytes, algorithm: str) -> None:
        store = ContentHasher(MemoryStorage())
        ref = content_reference(data, algorithm)

        store.put(ref, data)

        assert store.get(ref) == data

    @given(data=payloads, other=payloads, algorithm=algorithms)
    @settings(max_examples=200)
    def test_only_matching_content_accepted(self, data: bytes, other: bytes, algorithm: str) -> None:
        assume(data != other)
        inner = MemoryStorage()
        store = ContentHasher(inner)

        with pytest.raises(IntegrityError):
            store.put(content_reference(data, algorithm), other)

        assert len(inner) == 0

    @given(data=payloads.filter(bool), position=st.integers(min_value=0), bit=st.integers(min_value=0, max_value=7))
    @settings(max_examples=200)
    def test_corruption_detected_on_read(self, data: bytes, position: int, bit: int) -> None:
        inner = MemoryStorage()
        store = ContentHasher(inner)
        ref = content_reference(data)
        corrupted = bytearray(data)
        corrupted[position % len(data)] ^= 1 << bit
        inner.put(ref, bytes(corrupted))

        with pytest.raises(IntegrityError):
            store.get(ref)


class TestEncryptionProperties:
    """Property: decrypt(encrypt(x)) == x, and any tampering is an error."""

    @given(data=payloads)
    @settings(max_examples=100)
    def test_round_trip(self, data: bytes) -> None:
        store = EncryptingStorage(MemoryStorage(), _KMS)
        ref = Reference.parse("/p")

        store.put(ref, data)

        assert store.get(ref) == data

    @given(data=payloads, position=st.integers(min_value=0), bit=st.integers(min_value=0, max_value=7))
    @settings(max_examples=200)
    def test_any_bit_flip_rejected(self, data: bytes, position: int, bit: int) -> None:
        store = EncryptingStorage(MemoryStorage(), _KMS)
        blob = bytearray(store.encrypt(data))
        blob[position % len(blob)] ^= 1 << bit

        with pytest.raises((DecryptionError, KeyManagementError)):
            store.decrypt(bytes(blob))

    @given(data=payloads, cut=st.integers(min_value=1, max_value=64))
    @settings(max_examples=100)
    def test_truncation_rejected(self, data: bytes, cut: int) -> None:
        store = EncryptingStorage(MemoryStorage(), _KMS)
        blob = store.encrypt(data)

        with pytest.raises((DecryptionError, KeyManagementError)):
            store.decrypt(blob[: max(len(blob) - cut, 0)])
