"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core,
combinators or backends. Everything a component needs to participate in
the storage contract lives here.

Import patterns:
    from strata.contracts import Reference, Storage, NotFoundError, to_bytes

    # Settings classes (pull in pydantic/dynaconf)
    from strata.core.config import StrataSettings
"""

from strata.contracts.enums import HashAlgorithm, Operation, RouteMatch
from strata.contracts.errors import (
    DecryptionError,
    IntegrityError,
    InvalidReferenceError,
    KeyManagementError,
    NoRouteError,
    NotFoundError,
    NotSupportedError,
    ReadOnlyError,
    ReservedReferenceError,
    StorageError,
)
from strata.contracts.payload import Payload, Readable, is_stream, to_bytes, to_text
from strata.contracts.records import (
    CollectionRecord,
    LogRecord,
    VersionRecord,
    Versions,
    format_timestamp,
    parse_timestamp,
)
from strata.contracts.reference import ObjectReference, Reference
from strata.contracts.storage import BaseStorage, Finder, Storage, find_in, unsupported

__all__ = [
    "BaseStorage",
    "CollectionRecord",
    "DecryptionError",
    "Finder",
    "HashAlgorithm",
    "IntegrityError",
    "InvalidReferenceError",
    "KeyManagementError",
    "LogRecord",
    "NoRouteError",
    "NotFoundError",
    "NotSupportedError",
    "ObjectReference",
    "Operation",
    "Payload",
    "ReadOnlyError",
    "Readable",
    "Reference",
    "ReservedReferenceError",
    "RouteMatch",
    "Storage",
    "StorageError",
    "VersionRecord",
    "Versions",
    "find_in",
    "format_timestamp",
    "is_stream",
    "parse_timestamp",
    "to_bytes",
    "to_text",
    "unsupported",
]
