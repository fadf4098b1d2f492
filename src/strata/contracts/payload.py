# src/strata/contracts/payload.py
"""Payload normalization.

A payload is one of {bytes-like, text, readable binary stream}. Every
combinator that must inspect or transform content (hashing, encryption,
serialization) goes through ``to_bytes`` rather than handling each shape
itself.

Combinators may also return structured values (a version index, a list of
collection payloads, a directory listing). ``to_bytes`` serializes those as
newline-delimited JSON so they can be stored or hashed like any other
payload.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import IO, Any, Protocol, TypeAlias, runtime_checkable

__all__ = ["Payload", "Readable", "is_stream", "to_bytes", "to_text"]


@runtime_checkable
class Readable(Protocol):
    """Anything with a ``read()`` returning bytes (file objects, HTTP bodies)."""

    def read(self, size: int = -1, /) -> bytes: ...


Payload: TypeAlias = bytes | bytearray | memoryview | str | IO[bytes] | Readable


def is_stream(payload: object) -> bool:
    """Whether payload is a readable stream that can only be consumed once."""
    return not isinstance(payload, bytes | bytearray | memoryview | str) and isinstance(payload, Readable)


def _json_line(value: Any) -> str:
    if hasattr(value, "to_dict"):
        value = value.to_dict()
    return json.dumps(value, ensure_ascii=False, separators=(",", ":")) + "\n"


def to_bytes(payload: object) -> bytes:
    """Normalize a payload to a byte string.

    Streams are read to the end and closed. Mappings become one JSON line;
    sequences of records (anything with ``to_dict``) or JSON values become
    newline-delimited JSON.

    Raises:
        TypeError: If payload has none of the supported shapes
    """
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, bytearray | memoryview):
        return bytes(payload)
    if isinstance(payload, str):
        return payload.encode("utf-8")
    if isinstance(payload, Readable):
        try:
            data = payload.read()
        finally:
            close = getattr(payload, "close", None)
            if callable(close):
                close()
        if isinstance(data, str):
            return data.encode("utf-8")
        return bytes(data)
    if hasattr(payload, "to_ndjson"):
        encoded: bytes = payload.to_ndjson()
        return encoded
    if isinstance(payload, Mapping) or hasattr(payload, "to_dict"):
        return _json_line(payload).encode("utf-8")
    if isinstance(payload, Sequence):
        return "".join(_json_line(item) for item in payload).encode("utf-8")
    raise TypeError(f"can't handle payload type {type(payload).__name__}")


def to_text(payload: object) -> str:
    """Normalize a payload to UTF-8 text.

    Raises:
        UnicodeDecodeError: If the payload bytes are not valid UTF-8
    """
    if isinstance(payload, str):
        return payload
    return to_bytes(payload).decode("utf-8")
