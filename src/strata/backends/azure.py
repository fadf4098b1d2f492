# src/strata/backends/azure.py
"""Azure adapters: Blob Storage object store and Key Vault key wrapping.

Requires the ``azure`` extra (azure-storage-blob, azure-identity,
azure-keyvault-keys). A container plays the role of an S3 bucket.

IMPORTANT: connection strings, SAS tokens and service principal secrets
come from AzureBlobSettings, which should be filled from environment
variables (${AZURE_STORAGE_CONNECTION_STRING}), never hardcoded.
"""

from __future__ import annotations

import secrets
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Any, cast

import structlog
from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings

from strata.backends.kms import DATA_KEY_LENGTH, DataKey
from strata.contracts.errors import KeyManagementError, NotFoundError, StorageError
from strata.contracts.reference import ObjectReference
from strata.contracts.storage import unsupported

if TYPE_CHECKING:
    from strata.core.config import AzureBlobSettings

__all__ = ["AzureBlobObjectStore", "AzureKeyVaultClient", "create_blob_service_client"]

logger = structlog.get_logger(__name__)

# Azure blob batch requests are limited to 256 sub-requests
AZURE_MAX_DELETE_BATCH = 256


def create_blob_service_client(settings: AzureBlobSettings) -> BlobServiceClient:
    """Create BlobServiceClient using the configured auth method.

    Raises:
        ImportError: If azure-identity is needed and not installed
    """
    if settings._is_set(settings.connection_string):
        return BlobServiceClient.from_connection_string(cast(str, settings.connection_string))

    # model validation guarantees account_url for every other method
    account_url = cast(str, settings.account_url)

    if settings._is_set(settings.sas_token):
        sas_token = cast(str, settings.sas_token)
        sas = sas_token if sas_token.startswith("?") else f"?{sas_token}"
        return BlobServiceClient(f"{account_url.rstrip('/')}{sas}")

    try:
        from azure.identity import ClientSecretCredential, DefaultAzureCredential
    except ImportError as e:
        raise ImportError("azure-identity is required for Azure credential auth. Install with: uv pip install 'strata[azure]'") from e

    if settings.use_managed_identity:
        return BlobServiceClient(account_url, credential=DefaultAzureCredential())

    credential = ClientSecretCredential(
        tenant_id=cast(str, settings.tenant_id),
        client_id=cast(str, settings.client_id),
        client_secret=cast(str, settings.client_secret),
    )
    return BlobServiceClient(account_url, credential=credential)


class AzureBlobObjectStore:
    """ObjectStore backed by Azure Blob Storage."""

    max_delete_batch = AZURE_MAX_DELETE_BATCH

    def __init__(self, service_client: Any) -> None:
        self._service = service_client

    @classmethod
    def from_settings(cls, settings: AzureBlobSettings) -> AzureBlobObjectStore:
        return cls(create_blob_service_client(settings))

    def _error(self, operation: str, container: str, key: str | None, error: AzureError) -> StorageError:
        if isinstance(error, ResourceNotFoundError):
            reference = ObjectReference(container, key).to_reference() if key else None
            return NotFoundError(reference, detail=getattr(error, "error_code", None) or "resource not found")
        return StorageError(f"Azure {operation} failed for container {container!r} blob {key!r}: {error}")

    def get_object(self, bucket: str, key: str) -> bytes:
        try:
            data: bytes = self._service.get_blob_client(bucket, key).download_blob().readall()
        except AzureError as e:
            raise self._error("download_blob", bucket, key, e) from e
        return data

    def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
        content_encoding: str | None = None,
        public: bool = False,
    ) -> None:
        if public:
            # Azure has no per-blob ACL; public access is a container policy
            raise unsupported(self, "put_object", "public blobs are controlled by container access policy")
        settings = ContentSettings(content_type=content_type, content_encoding=content_encoding)
        try:
            self._service.get_blob_client(bucket, key).upload_blob(data, overwrite=True, content_settings=settings)
        except AzureError as e:
            raise self._error("upload_blob", bucket, key, e) from e

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self._service.get_blob_client(bucket, key).delete_blob()
        except ResourceNotFoundError:
            # Same as S3: deleting an absent object succeeds
            logger.debug("azure_blob_already_absent", container=bucket, blob=key)
        except AzureError as e:
            raise self._error("delete_blob", bucket, key, e) from e

    def delete_objects(self, bucket: str, keys: Sequence[str]) -> None:
        if len(keys) > self.max_delete_batch:
            raise StorageError(f"delete_objects accepts at most {self.max_delete_batch} keys, got {len(keys)}")
        if not keys:
            return
        logger.debug("azure_delete_blobs", container=bucket, count=len(keys))
        try:
            responses = self._service.get_container_client(bucket).delete_blobs(*keys, raise_on_any_failure=False)
            failed = [r.status_code for r in responses if r.status_code not in (202, 404)]
        except AzureError as e:
            raise self._error("delete_blobs", bucket, None, e) from e
        if failed:
            raise StorageError(f"Azure delete_blobs failed for {len(failed)} of {len(keys)} blobs in container {bucket!r}")

    def list_keys(self, bucket: str, prefix: str) -> Iterator[str]:
        try:
            for blob in self._service.get_container_client(bucket).list_blobs(name_starts_with=prefix):
                yield blob.name
        except AzureError as e:
            raise self._error("list_blobs", bucket, None, e) from e

    def exists(self, bucket: str, key: str) -> bool:
        try:
            found: bool = self._service.get_blob_client(bucket, key).exists()
        except AzureError as e:
            raise self._error("exists", bucket, key, e) from e
        return found


class AzureKeyVaultClient:
    """KeyManagementClient that wraps locally generated data keys with a Key Vault key.

    Key Vault has no GenerateDataKey, so the data key comes from
    ``secrets`` and only the wrap/unwrap happens in the vault (RSA-OAEP-256).
    """

    def __init__(self, crypto_client: Any) -> None:
        self._crypto = crypto_client

    @classmethod
    def create(cls, key_id: str) -> AzureKeyVaultClient:
        """Client for a Key Vault key identifier URL, using DefaultAzureCredential.

        Raises:
            ImportError: If azure-keyvault-keys or azure-identity not installed
        """
        try:
            from azure.identity import DefaultAzureCredential
            from azure.keyvault.keys.crypto import CryptographyClient
        except ImportError as e:
            raise ImportError(
                "azure-keyvault-keys and azure-identity are required for Key Vault support. Install with: uv pip install 'strata[azure]'"
            ) from e
        return cls(CryptographyClient(key_id, credential=DefaultAzureCredential()))

    @staticmethod
    def _algorithm() -> Any:
        from azure.keyvault.keys.crypto import KeyWrapAlgorithm

        return KeyWrapAlgorithm.rsa_oaep_256

    def generate_data_key(self) -> DataKey:
        plaintext = secrets.token_bytes(DATA_KEY_LENGTH)
        try:
            result = self._crypto.wrap_key(self._algorithm(), plaintext)
        except AzureError as e:
            raise KeyManagementError(f"Key Vault wrap_key failed: {e}") from e
        return DataKey(plaintext=plaintext, wrapped=result.encrypted_key)

    def decrypt_data_key(self, wrapped: bytes) -> bytes:
        try:
            result = self._crypto.unwrap_key(self._algorithm(), wrapped)
        except AzureError as e:
            raise KeyManagementError(f"Key Vault unwrap_key failed: {e}") from e
        key: bytes = result.key
        return key
