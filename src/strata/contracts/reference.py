# src/strata/contracts/reference.py
"""Reference types addressing content in a storage backend.

A Reference is an opaque, URI-shaped identifier. Backends and combinators
only ever see references through this type; two references are equal iff
their canonical string forms match.

Canonical form:
    scheme:opaque[?query][#fragment]
    [scheme:][//authority]path[?query][#fragment]

Query parameters are an order-irrelevant multi-map, so the canonical form
sorts the (key, value) pairs. That makes ``?b=2&a=1`` and ``?a=1&b=2`` the
same reference.

Backend-native references (ObjectReference) are an explicit variant with a
conversion function, rather than something discovered by runtime inspection.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from urllib.parse import parse_qsl, urlencode, urlsplit

from strata.contracts.errors import InvalidReferenceError

__all__ = ["ObjectReference", "Reference"]


@dataclass(frozen=True, eq=False)
class Reference:
    """Immutable URI-shaped identifier.

    Use ``Reference.parse`` for strings and ``Reference.from_path`` for bare
    keys. ``opaque`` and ``authority``/``path`` are mutually exclusive.
    """

    scheme: str = ""
    authority: str | None = None
    path: str = ""
    query: tuple[tuple[str, str], ...] = field(default=())
    fragment: str | None = None
    opaque: str | None = None

    def __post_init__(self) -> None:
        if self.opaque is not None:
            if not self.scheme:
                raise InvalidReferenceError("opaque reference requires a scheme")
            if self.authority is not None or self.path:
                raise InvalidReferenceError("opaque reference can't have authority or path")
        # Canonicalize query order so equality doesn't depend on insertion order
        object.__setattr__(self, "query", tuple(sorted((str(k), str(v)) for k, v in self.query)))

    @classmethod
    def parse(cls, text: str) -> Reference:
        """Parse a reference string using standard URI rules.

        Raises:
            InvalidReferenceError: If text is empty or not parseable
        """
        if not text or not text.strip():
            raise InvalidReferenceError("empty reference")
        try:
            parts = urlsplit(text)
        except ValueError as e:
            raise InvalidReferenceError(f"unparseable reference {text!r}: {e}") from e

        query = tuple(parse_qsl(parts.query, keep_blank_values=True))
        fragment = parts.fragment if "#" in text else None
        rest = text[len(parts.scheme) + 1 :] if parts.scheme else text
        authority = parts.netloc if rest.startswith("//") else None

        # scheme:opaque, e.g. "md5:3yQ..." (no authority, path not rooted)
        if parts.scheme and authority is None and parts.path and not parts.path.startswith("/"):
            return cls(scheme=parts.scheme, opaque=parts.path, query=query, fragment=fragment)

        return cls(
            scheme=parts.scheme,
            authority=authority,
            path=parts.path,
            query=query,
            fragment=fragment,
        )

    @classmethod
    def from_path(cls, path: str) -> Reference:
        """Reference with only a path component."""
        return cls(path=path)

    @property
    def segments(self) -> tuple[str, ...]:
        """Non-empty path segments, in order."""
        return tuple(s for s in self.path.split("/") if s)

    @property
    def has_query(self) -> bool:
        return bool(self.query)

    def query_values(self, key: str) -> list[str]:
        return [v for k, v in self.query if k == key]

    def query_value(self, key: str) -> str | None:
        """First value for key, or None."""
        values = self.query_values(key)
        return values[0] if values else None

    def without_fragment(self) -> Reference:
        return replace(self, fragment=None)

    def without_query(self) -> Reference:
        return replace(self, query=())

    def without_query_key(self, key: str) -> Reference:
        return replace(self, query=tuple((k, v) for k, v in self.query if k != key))

    def __str__(self) -> str:
        parts: list[str] = []
        if self.scheme:
            parts.append(f"{self.scheme}:")
        if self.opaque is not None:
            parts.append(self.opaque)
        else:
            if self.authority is not None:
                parts.append(f"//{self.authority}")
                if self.path and not self.path.startswith("/"):
                    parts.append("/")
            parts.append(self.path)
        if self.query:
            parts.append(f"?{urlencode(self.query)}")
        if self.fragment is not None:
            parts.append(f"#{self.fragment}")
        return "".join(parts)

    def __repr__(self) -> str:
        return f"Reference({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Reference):
            return NotImplemented
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(str(self))


@dataclass(frozen=True)
class ObjectReference:
    """Object-store-native reference (bucket + key).

    This is the backend-native variant of Reference used by ObjectStorage.
    Convert with ``to_reference`` / ``from_reference``.
    """

    bucket: str
    key: str
    public: bool = False

    def to_reference(self) -> Reference:
        return Reference(scheme="s3", authority=self.bucket, path=f"/{self.key}")

    @classmethod
    def from_reference(cls, reference: Reference, *, default_bucket: str) -> ObjectReference:
        """Map a generic reference onto a bucket and key.

        An ``s3://bucket/...`` reference names its own bucket; anything else
        lands in the default bucket. Leading slashes are stripped from the key.
        """
        if reference.scheme.lower() == "s3" and reference.authority:
            bucket = reference.authority
        else:
            bucket = default_bucket
        key = reference.path.lstrip("/")
        if not key:
            raise InvalidReferenceError(f"reference {reference} has no object key")
        return cls(bucket=bucket, key=key)

    def __str__(self) -> str:
        return str(self.to_reference())
