# src/strata/combinators/encrypter.py
"""Envelope encryption over any storage.

Each put/merge gets a fresh AES-256 data key from the key-management
service. Only the wrapped key is stored, alongside the AES-GCM output:

    +----------------+-------------+----------+------------+---------+
    | len (>q, 8 B)  | wrapped key | nonce 12 | ciphertext | tag 16  |
    +----------------+-------------+----------+------------+---------+

Any framing or authentication failure raises DecryptionError. Tampered or
corrupted ciphertext is never returned as plaintext.
"""

from __future__ import annotations

import hmac
import os
import struct

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from strata.backends.kms import DATA_KEY_LENGTH, KeyManagementClient
from strata.contracts.errors import DecryptionError, KeyManagementError, StorageError
from strata.contracts.payload import to_bytes
from strata.contracts.reference import Reference
from strata.contracts.storage import BaseStorage, Storage

__all__ = ["NONCE_SIZE", "TAG_SIZE", "EncryptingStorage"]

logger = structlog.get_logger(__name__)

NONCE_SIZE = 12
TAG_SIZE = 16

_LENGTH_PREFIX = struct.Struct(">q")
_SELF_TEST_PLAINTEXT = b"hello world"


class EncryptingStorage(BaseStorage):
    """Decorator encrypting payloads before they reach the inner store.

    Construction runs a round trip through the key-management client and
    raises KeyManagementError if it fails, so misconfiguration surfaces
    before any data is written.
    """

    def __init__(self, inner: Storage, key_management: KeyManagementClient) -> None:
        self._inner = inner
        self._kms = key_management
        self._self_test()

    def _self_test(self) -> None:
        try:
            decrypted = self.decrypt(self.encrypt(_SELF_TEST_PLAINTEXT))
        except StorageError as e:
            raise KeyManagementError(f"key-management self-test failed: {e}") from e
        if not hmac.compare_digest(decrypted, _SELF_TEST_PLAINTEXT):
            raise KeyManagementError("key-management self-test failed: round trip mismatch")
        logger.debug("kms_self_test_passed", client=type(self._kms).__name__)

    def _checked_key(self, key: bytes) -> bytes:
        if len(key) != DATA_KEY_LENGTH:
            raise KeyManagementError(f"got {len(key)}-byte data key, expected {DATA_KEY_LENGTH}")
        return key

    def encrypt(self, plaintext: bytes) -> bytes:
        """Seal plaintext under a fresh data key and frame it."""
        data_key = self._kms.generate_data_key()
        key = self._checked_key(data_key.plaintext)
        nonce = os.urandom(NONCE_SIZE)
        sealed = AESGCM(key).encrypt(nonce, plaintext, None)
        return b"".join((_LENGTH_PREFIX.pack(len(data_key.wrapped)), data_key.wrapped, nonce, sealed))

    def decrypt(self, blob: bytes) -> bytes:
        """Unframe, unwrap the data key and open.

        Raises:
            DecryptionError: If the framing is malformed or authentication fails
            KeyManagementError: If the data key can't be unwrapped
        """
        if len(blob) < _LENGTH_PREFIX.size:
            raise DecryptionError(f"encrypted payload too short: {len(blob)} bytes")
        (wrapped_length,) = _LENGTH_PREFIX.unpack_from(blob)
        body_start = _LENGTH_PREFIX.size + wrapped_length
        if wrapped_length <= 0 or body_start + NONCE_SIZE + TAG_SIZE > len(blob):
            raise DecryptionError(f"encrypted payload has invalid wrapped-key length {wrapped_length}")

        wrapped = blob[_LENGTH_PREFIX.size : body_start]
        nonce = blob[body_start : body_start + NONCE_SIZE]
        sealed = blob[body_start + NONCE_SIZE :]

        key = self._checked_key(self._kms.decrypt_data_key(wrapped))
        try:
            return AESGCM(key).decrypt(nonce, sealed, None)
        except InvalidTag as e:
            raise DecryptionError("authentication failed: payload was tampered with or corrupted") from e

    def get(self, reference: Reference) -> bytes:
        return self.decrypt(to_bytes(self._inner.get(reference)))

    def put(self, reference: Reference, payload: object) -> None:
        self._inner.put(reference, self.encrypt(to_bytes(payload)))

    def merge(self, reference: Reference, payload: object) -> None:
        self._inner.merge(reference, self.encrypt(to_bytes(payload)))

    def delete(self, reference: Reference) -> None:
        self._inner.delete(reference)
