# src/strata/backends/aws.py
"""AWS adapters: S3 object store and KMS data keys.

Requires the ``aws`` extra (boto3). Every boto3 call is an external system
call: ClientError is translated here, either to NotFoundError for the
"missing" codes or to StorageError / KeyManagementError with the operation
and AWS error code attached.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import Any

import boto3
import structlog
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from strata.backends.kms import DATA_KEY_LENGTH, DataKey
from strata.backends.objectstore import MAX_DELETE_BATCH
from strata.contracts.errors import KeyManagementError, NotFoundError, StorageError
from strata.contracts.reference import ObjectReference

__all__ = ["AwsKmsClient", "S3ObjectStore"]

logger = structlog.get_logger(__name__)

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NoSuchBucket", "404", "NotFound"})


def _error_code(error: ClientError) -> str:
    code: str = error.response.get("Error", {}).get("Code", "")
    return code


def _boto_config(connect_timeout_s: float, read_timeout_s: float, max_attempts: int) -> BotoConfig:
    return BotoConfig(
        connect_timeout=connect_timeout_s,
        read_timeout=read_timeout_s,
        retries={"max_attempts": max_attempts, "mode": "standard"},
    )


class S3ObjectStore:
    """ObjectStore backed by an S3 (or S3-compatible) client."""

    max_delete_batch = MAX_DELETE_BATCH

    def __init__(self, client: Any) -> None:
        self._s3 = client

    @classmethod
    def create(
        cls,
        *,
        region: str | None = None,
        endpoint_url: str | None = None,
        connect_timeout_s: float = 10.0,
        read_timeout_s: float = 30.0,
        max_attempts: int = 5,
    ) -> S3ObjectStore:
        session = boto3.Session(region_name=region)
        client = session.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            config=_boto_config(connect_timeout_s, read_timeout_s, max_attempts),
        )
        return cls(client)

    def _translate(self, operation: str, bucket: str, key: str | None, error: ClientError) -> StorageError:
        code = _error_code(error)
        if code in _NOT_FOUND_CODES:
            reference = ObjectReference(bucket, key).to_reference() if key else None
            return NotFoundError(reference, detail=code)
        return StorageError(f"S3 {operation} failed for bucket {bucket!r} key {key!r}: {code or error}")

    def get_object(self, bucket: str, key: str) -> bytes:
        try:
            response = self._s3.get_object(Bucket=bucket, Key=key)
            body = response["Body"]
            try:
                data: bytes = body.read()
            finally:
                body.close()
        except ClientError as e:
            raise self._translate("get_object", bucket, key, e) from e
        except BotoCoreError as e:
            raise StorageError(f"S3 get_object failed for bucket {bucket!r} key {key!r}: {e}") from e
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
        params: dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": data}
        if content_type:
            params["ContentType"] = content_type
        if content_encoding:
            params["ContentEncoding"] = content_encoding
        if public:
            params["ACL"] = "public-read"
        try:
            self._s3.put_object(**params)
        except ClientError as e:
            raise self._translate("put_object", bucket, key, e) from e
        except BotoCoreError as e:
            raise StorageError(f"S3 put_object failed for bucket {bucket!r} key {key!r}: {e}") from e

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self._s3.delete_object(Bucket=bucket, Key=key)
        except ClientError as e:
            raise self._translate("delete_object", bucket, key, e) from e
        except BotoCoreError as e:
            raise StorageError(f"S3 delete_object failed for bucket {bucket!r} key {key!r}: {e}") from e

    def delete_objects(self, bucket: str, keys: Sequence[str]) -> None:
        if len(keys) > self.max_delete_batch:
            raise StorageError(f"delete_objects accepts at most {self.max_delete_batch} keys, got {len(keys)}")
        if not keys:
            return
        logger.debug("s3_delete_objects", bucket=bucket, count=len(keys))
        try:
            response = self._s3.delete_objects(
                Bucket=bucket,
                Delete={"Objects": [{"Key": k} for k in keys], "Quiet": True},
            )
        except ClientError as e:
            raise self._translate("delete_objects", bucket, None, e) from e
        except BotoCoreError as e:
            raise StorageError(f"S3 delete_objects failed for bucket {bucket!r}: {e}") from e
        # Quiet mode only reports failures
        errors = response.get("Errors", [])
        if errors:
            first = errors[0]
            raise StorageError(
                f"S3 delete_objects failed for {len(errors)} of {len(keys)} keys in bucket {bucket!r}; "
                f"first: {first.get('Key')!r} {first.get('Code')}"
            )

    def list_keys(self, bucket: str, prefix: str) -> Iterator[str]:
        paginator = self._s3.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix, PaginationConfig={"PageSize": 1000}):
                for obj in page.get("Contents", []):
                    yield obj["Key"]
        except ClientError as e:
            raise self._translate("list_objects_v2", bucket, None, e) from e
        except BotoCoreError as e:
            raise StorageError(f"S3 list_objects_v2 failed for bucket {bucket!r}: {e}") from e

    def exists(self, bucket: str, key: str) -> bool:
        try:
            self._s3.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            raise self._translate("head_object", bucket, key, e) from e
        except BotoCoreError as e:
            raise StorageError(f"S3 head_object failed for bucket {bucket!r} key {key!r}: {e}") from e
        return True


class AwsKmsClient:
    """KeyManagementClient backed by AWS KMS GenerateDataKey / Decrypt."""

    def __init__(self, client: Any, key_id: str) -> None:
        if not key_id:
            raise KeyManagementError("AWS KMS client needs a key id")
        self._kms = client
        self.key_id = key_id

    @classmethod
    def create(cls, key_id: str, *, region: str | None = None, endpoint_url: str | None = None) -> AwsKmsClient:
        session = boto3.Session(region_name=region)
        client = session.client(
            "kms",
            region_name=region,
            endpoint_url=endpoint_url,
            config=_boto_config(10.0, 30.0, 5),
        )
        return cls(client, key_id)

    def generate_data_key(self) -> DataKey:
        try:
            response = self._kms.generate_data_key(KeyId=self.key_id, KeySpec="AES_256")
        except (ClientError, BotoCoreError) as e:
            raise KeyManagementError(f"KMS GenerateDataKey failed for key {self.key_id!r}: {e}") from e
        plaintext: bytes = response["Plaintext"]
        if len(plaintext) != DATA_KEY_LENGTH:
            raise KeyManagementError(f"KMS returned a {len(plaintext)}-byte data key, expected {DATA_KEY_LENGTH}")
        return DataKey(plaintext=plaintext, wrapped=response["CiphertextBlob"])

    def decrypt_data_key(self, wrapped: bytes) -> bytes:
        try:
            response = self._kms.decrypt(CiphertextBlob=wrapped, KeyId=self.key_id)
        except (ClientError, BotoCoreError) as e:
            raise KeyManagementError(f"KMS Decrypt failed for key {self.key_id!r}: {e}") from e
        plaintext: bytes = response["Plaintext"]
        return plaintext
