# tests/unit/core/test_factory.py
"""Tests for building backends from settings."""

import base64
from unittest.mock import MagicMock, patch

from strata.backends.kms import LocalKeyManagementClient
from strata.backends.memory import MemoryStorage
from strata.backends.objectstore import MemoryObjectStore
from strata.combinators.collection import CollectionStorage
from strata.contracts.enums import RouteMatch
from strata.contracts.reference import Reference
from strata.core.config import (
    AzureBlobSettings,
    CollectionSettings,
    KeyManagementSettings,
    MultiplexerSettings,
    S3Settings,
    StrataSettings,
)
from strata.core.factory import (
    collection_prefix,
    create_collection,
    create_key_management_client,
    create_multiplexer,
    create_object_store,
    default_bucket,
)


class TestCreateObjectStore:
    def test_memory_store_has_default_bucket(self) -> None:
        store = create_object_store(StrataSettings())

        assert isinstance(store, MemoryObjectStore)
        assert not store.exists("strata", "anything")

    def test_s3_store_uses_settings(self) -> None:
        settings = StrataSettings(
            object_store="s3",
            s3=S3Settings(bucket="events", region="eu-west-1", endpoint_url="http://localhost:9000", max_attempts=2),
        )

        with patch("strata.backends.aws.S3ObjectStore.create") as create:
            create_object_store(settings)

        create.assert_called_once_with(
            region="eu-west-1",
            endpoint_url="http://localhost:9000",
            connect_timeout_s=10.0,
            read_timeout_s=30.0,
            max_attempts=2,
        )

    def test_azure_store_from_settings(self) -> None:
        azure_blob = AzureBlobSettings(container="events", connection_string="UseDevelopmentStorage=true")
        settings = StrataSettings(object_store="azure_blob", azure_blob=azure_blob)

        with patch("strata.backends.azure.create_blob_service_client") as create_client:
            store = create_object_store(settings)

        create_client.assert_called_once_with(azure_blob)
        assert store.max_delete_batch == 256


class TestDefaultBucket:
    def test_per_store(self) -> None:
        s3 = StrataSettings(object_store="s3", s3=S3Settings(bucket="b1"))
        azure = StrataSettings(
            object_store="azure_blob",
            azure_blob=AzureBlobSettings(container="c1", connection_string="UseDevelopmentStorage=true"),
        )

        assert default_bucket(s3) == "b1"
        assert default_bucket(azure) == "c1"
        assert default_bucket(StrataSettings()) == "strata"


class TestCreateKeyManagementClient:
    def test_local(self) -> None:
        settings = KeyManagementSettings(provider="local", master_key=base64.b64encode(bytes(32)).decode())

        client = create_key_management_client(settings)

        assert isinstance(client, LocalKeyManagementClient)
        data_key = client.generate_data_key()
        assert client.decrypt_data_key(data_key.wrapped) == data_key.plaintext

    def test_aws(self) -> None:
        settings = KeyManagementSettings(provider="aws", key_id="alias/strata", region="eu-west-1")

        with patch("strata.backends.aws.AwsKmsClient.create") as create:
            create_key_management_client(settings)

        create.assert_called_once_with("alias/strata", region="eu-west-1", endpoint_url=None)

    def test_azure(self) -> None:
        key_id = "https://vault.vault.azure.net/keys/strata/1"
        settings = KeyManagementSettings(provider="azure", key_id=key_id)

        with patch("strata.backends.azure.AzureKeyVaultClient.create", return_value=MagicMock()) as create:
            create_key_management_client(settings)

        create.assert_called_once_with(key_id)


class TestCreateCollection:
    def test_uses_collection_settings(self) -> None:
        settings = StrataSettings(collection=CollectionSettings(prefix="events", consolidation_threshold=3))

        collection = create_collection(settings, Reference.parse("/audit"), object_store=MemoryObjectStore(["strata"]))

        assert isinstance(collection, CollectionStorage)
        assert collection.prefix == "events/audit"
        assert collection.consolidation_threshold == 3

    def test_collections_do_not_share_objects(self) -> None:
        """Two references from one config get disjoint prefixes."""
        settings = StrataSettings(collection=CollectionSettings(prefix="events"))
        store = MemoryObjectStore(["strata"])
        audit = create_collection(settings, Reference.parse("/audit"), object_store=store)
        login = create_collection(settings, Reference.parse("/audit/login"), object_store=store)

        audit.merge(audit.reference, {"a": 1})
        login.merge(login.reference, {"l": 1})

        assert audit.get(audit.reference) == [{"a": 1}]
        assert login.get(login.reference) == [{"l": 1}]

    def test_pathless_reference_uses_hash(self) -> None:
        settings = StrataSettings()

        prefix = collection_prefix(settings, Reference.parse("urn:audit"))

        assert prefix.startswith("collections/")
        assert ":" not in prefix


class TestCreateMultiplexer:
    def test_match_from_settings(self) -> None:
        settings = StrataSettings(multiplexer=MultiplexerSettings(match=RouteMatch.LONGEST_PREFIX))

        mux = create_multiplexer(settings, {"logs": MemoryStorage()})

        assert mux.match is RouteMatch.LONGEST_PREFIX
