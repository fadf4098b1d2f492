# src/strata/backends/kms.py
"""Key-management clients for envelope encryption.

EncryptingStorage asks a KeyManagementClient for a fresh data key per
payload and stores only the wrapped form next to the ciphertext. The
master key never leaves the key-management service (or, for the local
provider, never leaves this process).
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from cryptography.hazmat.primitives.keywrap import InvalidUnwrap, aes_key_unwrap, aes_key_wrap

from strata.contracts.errors import KeyManagementError

__all__ = [
    "DATA_KEY_LENGTH",
    "DataKey",
    "KeyManagementClient",
    "LocalKeyManagementClient",
]

# AES-256
DATA_KEY_LENGTH = 32


@dataclass(frozen=True, slots=True)
class DataKey:
    """A data key in both forms.

    Attributes:
        plaintext: Raw key bytes; use once and discard
        wrapped: Key encrypted under the master key, safe to store
    """

    plaintext: bytes = field(repr=False)
    wrapped: bytes


@runtime_checkable
class KeyManagementClient(Protocol):
    """Generates and unwraps AES-256 data keys."""

    def generate_data_key(self) -> DataKey:
        """Create a fresh 32-byte data key.

        Raises:
            KeyManagementError: If the service call fails
        """
        ...

    def decrypt_data_key(self, wrapped: bytes) -> bytes:
        """Unwrap a stored data key.

        Raises:
            KeyManagementError: If the key can't be unwrapped
        """
        ...


class LocalKeyManagementClient:
    """RFC 3394 AES key wrap with a master key held in process.

    For development and tests. Production stacks use AWS KMS or Azure Key
    Vault so the master key is never in application memory.
    """

    def __init__(self, master_key: bytes) -> None:
        if len(master_key) not in (16, 24, 32):
            raise KeyManagementError(f"master key must be 16, 24 or 32 bytes, got {len(master_key)}")
        self._master_key = master_key

    @classmethod
    def generate(cls) -> LocalKeyManagementClient:
        """Client with a random 256-bit master key."""
        return cls(secrets.token_bytes(32))

    def generate_data_key(self) -> DataKey:
        plaintext = secrets.token_bytes(DATA_KEY_LENGTH)
        return DataKey(plaintext=plaintext, wrapped=aes_key_wrap(self._master_key, plaintext))

    def decrypt_data_key(self, wrapped: bytes) -> bytes:
        try:
            return aes_key_unwrap(self._master_key, wrapped)
        except (InvalidUnwrap, ValueError) as e:
            raise KeyManagementError(f"can't unwrap data key: {e}") from e

    def __repr__(self) -> str:
        return f"{type(self).__name__}(master_key=<redacted>)"
