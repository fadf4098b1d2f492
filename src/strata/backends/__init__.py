"""Storage backends and external collaborators.

Cloud adapters live in their own modules so importing this package never
requires a cloud SDK:

    from strata.backends.aws import S3ObjectStore, AwsKmsClient       # strata[aws]
    from strata.backends.azure import AzureBlobObjectStore            # strata[azure]
"""

from strata.backends.filesystem import FileEntry, FilesystemStorage
from strata.backends.kms import DATA_KEY_LENGTH, DataKey, KeyManagementClient, LocalKeyManagementClient
from strata.backends.memory import MemoryStorage
from strata.backends.objectstore import MAX_DELETE_BATCH, MemoryObjectStore, ObjectStorage, ObjectStore, StoredObject
from strata.backends.sql import SQLStorage

__all__ = [
    "DATA_KEY_LENGTH",
    "MAX_DELETE_BATCH",
    "DataKey",
    "FileEntry",
    "FilesystemStorage",
    "KeyManagementClient",
    "LocalKeyManagementClient",
    "MemoryObjectStore",
    "MemoryStorage",
    "ObjectStorage",
    "ObjectStore",
    "SQLStorage",
    "StoredObject",
]
