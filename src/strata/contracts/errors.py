# src/strata/contracts/errors.py
"""Exception hierarchy shared by every backend and combinator.

Two sentinel kinds propagate through every layer and are what callers
normally test for:

- NotFoundError: the reference is absent in a backend. Backend-specific
  conditions (missing file, missing key, missing bucket) are translated to
  this sentinel at the adapter boundary.
- NotSupportedError: the operation is not meaningful for this component
  (e.g. delete on content-addressed data).

Everything else (integrity mismatch, decode failure, malformed reference,
key-management failure) is surfaced with context and never retried here.
Retry policy is the caller's concern.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from strata.contracts.reference import Reference


class StorageError(Exception):
    """Base class for all errors raised through the storage contract."""

    pass


class NotFoundError(StorageError):
    """Raised when a reference is absent in a backend.

    Attributes:
        reference: The reference that was looked up (if known)
        detail: Backend-specific context (e.g. "no such bucket")
    """

    def __init__(self, reference: Reference | None = None, detail: str | None = None) -> None:
        self.reference = reference
        self.detail = detail
        message = "not found"
        if detail:
            message = f"{message} ({detail})"
        if reference is not None:
            message = f"{message}: {reference}"
        super().__init__(message)


class NotSupportedError(StorageError):
    """Raised when an operation is not meaningful for a component.

    Attributes:
        component: Class name of the component that rejected the call
        operation: Operation name ("get", "put", "delete", "merge", "find")
    """

    def __init__(self, component: str, operation: str, detail: str | None = None) -> None:
        self.component = component
        self.operation = operation
        message = f"{component}.{operation} unsupported"
        if detail:
            message = f"{message}; {detail}"
        super().__init__(message)


class IntegrityError(StorageError):
    """Raised when content does not match the digest it is addressed by.

    Also raised when a decorator's own bookkeeping (e.g. a version index)
    is found in a state that violates its invariants. We never silently
    return corrupted data.
    """

    pass


class InvalidReferenceError(StorageError, ValueError):
    """Raised when a reference is malformed or has components a component can't accept."""

    pass


class ReservedReferenceError(StorageError):
    """Raised when a caller addresses a key owned by a decorator's bookkeeping."""

    def __init__(self, reference: Reference, owner: str) -> None:
        self.reference = reference
        self.owner = owner
        super().__init__(f"reference {reference} is reserved by {owner}")


class ReadOnlyError(StorageError):
    """Raised on any mutation through a read-only wrapper."""

    pass


class NoRouteError(StorageError):
    """Raised when a multiplexer has no backend for a reference."""

    def __init__(self, route_key: str, reference: Reference | str) -> None:
        self.route_key = route_key
        self.reference = reference
        super().__init__(f"no route for {route_key!r} ({reference})")


class KeyManagementError(StorageError):
    """Raised when the key-management service fails or returns bad key material."""

    pass


class DecryptionError(StorageError):
    """Raised when an encrypted blob is malformed, tampered with or corrupted."""

    pass
