"""Storage combinators.

Each combinator wraps one or more Storage implementations and is itself a
Storage, so they stack in any order:

    store = CacheStorage(
        fast=MemoryStorage(),
        authoritative=VersioningStorage(EncryptingStorage(ObjectStorage(s3, "bucket"), kms)),
    )
"""

from strata.combinators.appender import AppendingStorage
from strata.combinators.cache import CacheStorage
from strata.combinators.collection import CollectionStorage
from strata.combinators.content import ContentHasher, content_reference
from strata.combinators.deferred import DeferredStorage
from strata.combinators.encoded import EncodedReferences
from strata.combinators.encrypter import EncryptingStorage
from strata.combinators.listing import AuditLogStorage, ListingStorage
from strata.combinators.multiplexer import Multiplexer
from strata.combinators.read_only import ReadOnlyStorage
from strata.combinators.versioning import VersioningStorage, version_target

__all__ = [
    "AppendingStorage",
    "AuditLogStorage",
    "CacheStorage",
    "CollectionStorage",
    "ContentHasher",
    "DeferredStorage",
    "EncodedReferences",
    "EncryptingStorage",
    "ListingStorage",
    "Multiplexer",
    "ReadOnlyStorage",
    "VersioningStorage",
    "content_reference",
    "version_target",
]
