# src/strata/core/factory.py
"""Build backends and clients from StrataSettings.

Cloud SDKs are imported only when a setting asks for them; a missing SDK is
an ImportError naming the extra to install.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import cast

from strata.backends.kms import KeyManagementClient, LocalKeyManagementClient
from strata.backends.objectstore import MemoryObjectStore, ObjectStore
from strata.combinators.collection import CollectionStorage
from strata.combinators.multiplexer import Multiplexer
from strata.contracts.reference import Reference
from strata.contracts.storage import Storage
from strata.core.config import AzureBlobSettings, KeyManagementSettings, S3Settings, StrataSettings
from strata.core.hashing import encode_reference

__all__ = [
    "create_collection",
    "create_key_management_client",
    "create_multiplexer",
    "collection_prefix",
    "create_object_store",
    "default_bucket",
]


def create_object_store(settings: StrataSettings) -> ObjectStore:
    """Object store selected by ``settings.object_store``.

    Raises:
        ImportError: If the store's SDK extra is not installed
    """
    if settings.object_store == "s3":
        try:
            from strata.backends.aws import S3ObjectStore
        except ImportError as e:
            raise ImportError("boto3 is required for the S3 object store. Install with: uv pip install 'strata[aws]'") from e
        # StrataSettings validation guarantees the section for the selected store
        s3 = cast(S3Settings, settings.s3)
        return S3ObjectStore.create(
            region=s3.region,
            endpoint_url=s3.endpoint_url,
            connect_timeout_s=s3.connect_timeout_s,
            read_timeout_s=s3.read_timeout_s,
            max_attempts=s3.max_attempts,
        )
    if settings.object_store == "azure_blob":
        try:
            from strata.backends.azure import AzureBlobObjectStore
        except ImportError as e:
            raise ImportError(
                "azure-storage-blob is required for the Azure Blob object store. Install with: uv pip install 'strata[azure]'"
            ) from e
        azure_blob = cast(AzureBlobSettings, settings.azure_blob)
        return AzureBlobObjectStore.from_settings(azure_blob)
    return MemoryObjectStore(buckets=[default_bucket(settings)])


def default_bucket(settings: StrataSettings) -> str:
    """Bucket (or container) name for the configured object store."""
    if settings.object_store == "s3" and settings.s3 is not None:
        return settings.s3.bucket
    if settings.object_store == "azure_blob" and settings.azure_blob is not None:
        return settings.azure_blob.container
    return "strata"


def create_key_management_client(settings: KeyManagementSettings) -> KeyManagementClient:
    """Key-management client for ``settings.provider``.

    Raises:
        ImportError: If the provider's SDK extra is not installed
    """
    if settings.provider == "aws":
        try:
            from strata.backends.aws import AwsKmsClient
        except ImportError as e:
            raise ImportError("boto3 is required for AWS KMS. Install with: uv pip install 'strata[aws]'") from e
        # KeyManagementSettings validation guarantees key_id for cloud providers
        return AwsKmsClient.create(cast(str, settings.key_id), region=settings.region, endpoint_url=settings.endpoint_url)
    if settings.provider == "azure":
        try:
            from strata.backends.azure import AzureKeyVaultClient
        except ImportError as e:
            raise ImportError("azure-keyvault-keys is required for Azure Key Vault. Install with: uv pip install 'strata[azure]'") from e
        return AzureKeyVaultClient.create(cast(str, settings.key_id))
    return LocalKeyManagementClient(settings.master_key_bytes())


def collection_prefix(settings: StrataSettings, reference: Reference) -> str:
    """Object prefix owned by the collection bound to reference.

    ``/audit/login`` under prefix ``collections`` is ``collections/audit/login``.
    References without a path use their hash reference instead.
    """
    name = reference.path.strip("/") or encode_reference(reference).opaque
    return f"{settings.collection.prefix.rstrip('/')}/{name}"


def create_collection(settings: StrataSettings, reference: Reference, object_store: ObjectStore | None = None) -> CollectionStorage:
    """CollectionStorage bound to reference, tuned by ``settings.collection``."""
    store = object_store if object_store is not None else create_object_store(settings)
    return CollectionStorage(
        store,
        default_bucket(settings),
        reference,
        prefix=collection_prefix(settings, reference),
        consolidation_threshold=settings.collection.consolidation_threshold,
        delete_batch_size=settings.collection.delete_batch_size,
    )


def create_multiplexer(settings: StrataSettings, routes: Mapping[str, Storage]) -> Multiplexer:
    return Multiplexer(routes, match=settings.multiplexer.match)
