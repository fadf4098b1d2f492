# src/strata/core/config.py
"""
Configuration schema and loading for strata storage stacks.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.

Configuration only describes the external collaborators (object store,
key-management service) and the tunables of the combinators. How the
combinators are stacked is decided by the caller in code.
"""

import base64
import binascii
import os
import re
from pathlib import Path
from typing import Any, Literal, Self

from pydantic import BaseModel, Field, field_validator, model_validator

from strata.contracts.enums import RouteMatch


class LoggingSettings(BaseModel):
    """Logging configuration (see strata.core.logging.configure_logging)."""

    model_config = {"frozen": True, "extra": "forbid"}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level",
    )
    json_output: bool = Field(
        default=False,
        description="Emit JSON lines instead of console-formatted output",
    )


class CollectionSettings(BaseModel):
    """Compacting collection tunables.

    Example YAML:
        collection:
          prefix: "events/audit"
          consolidation_threshold: 10
    """

    model_config = {"frozen": True, "extra": "forbid"}

    prefix: str = Field(
        default="collections",
        min_length=1,
        description=(
            "Namespace for collection objects (no leading '/'). Each collection owns "
            "<prefix>/<reference path>/ and deletes objects there on consolidation"
        ),
    )
    consolidation_threshold: int = Field(
        default=10,
        gt=0,
        description="Consolidate when more than this many objects back the collection",
    )
    delete_batch_size: int = Field(
        default=1000,
        ge=1,
        le=1000,
        description="Maximum keys per bulk-delete call (S3 caps this at 1000)",
    )

    @field_validator("prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        if v.startswith("/"):
            raise ValueError("collection prefix can't start with '/'")
        return v


class MultiplexerSettings(BaseModel):
    """Route matching for Multiplexer.

    Deployments disagree on the route rule (exact first segment vs. longest
    prefix), so it is explicit configuration.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    match: RouteMatch = Field(
        default=RouteMatch.EXACT,
        description="exact | longest_prefix | scheme",
    )


class S3Settings(BaseModel):
    """S3 (or S3-compatible) object store.

    Example YAML:
        s3:
          bucket: "my-bucket"
          region: "us-east-1"
          endpoint_url: "http://localhost:9000"   # MinIO / localstack
    """

    model_config = {"frozen": True, "extra": "forbid"}

    bucket: str = Field(min_length=1, description="Default bucket")
    region: str | None = Field(default=None, description="AWS region")
    endpoint_url: str | None = Field(default=None, description="Override endpoint (S3-compatible stores)")
    connect_timeout_s: float = Field(default=10.0, gt=0)
    read_timeout_s: float = Field(default=30.0, gt=0)
    max_attempts: int = Field(default=5, ge=1, description="botocore standard-mode retry attempts")


class AzureBlobSettings(BaseModel):
    """Azure Blob Storage container.

    Supports four authentication methods (mutually exclusive):
    1. connection_string - Simple connection string auth
    2. sas_token + account_url - Shared Access Signature token
    3. use_managed_identity + account_url - Azure Managed Identity
    4. tenant_id + client_id + client_secret + account_url - Service Principal

    Credentials should come from the environment:
        azure_blob:
          container: "events"
          connection_string: "${AZURE_STORAGE_CONNECTION_STRING}"
    """

    model_config = {"frozen": True, "extra": "forbid"}

    container: str = Field(min_length=1, description="Blob container name")
    connection_string: str | None = None
    sas_token: str | None = None
    use_managed_identity: bool = False
    account_url: str | None = None
    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: str | None = None

    @staticmethod
    def _is_set(value: str | None) -> bool:
        return value is not None and bool(value.strip())

    @model_validator(mode="after")
    def validate_auth_method(self) -> Self:
        """Ensure exactly one auth method is configured."""
        has_account_url = self._is_set(self.account_url)
        sp_fields = [self.tenant_id, self.client_id, self.client_secret]
        methods = [
            self._is_set(self.connection_string),
            self._is_set(self.sas_token) and has_account_url,
            self.use_managed_identity and has_account_url,
            all(self._is_set(f) for f in sp_fields) and has_account_url,
        ]
        active_count = sum(methods)

        if self._is_set(self.sas_token) and not has_account_url:
            raise ValueError("SAS token auth requires account_url")
        if self.use_managed_identity and not has_account_url:
            raise ValueError("Managed Identity auth requires account_url")
        if 0 < sum(1 for f in sp_fields if f is not None) < 3:
            raise ValueError("Service Principal auth requires tenant_id, client_id and client_secret")

        if active_count == 0:
            raise ValueError(
                "No authentication method configured. Provide one of: "
                "connection_string, sas_token + account_url, "
                "use_managed_identity + account_url, or "
                "tenant_id + client_id + client_secret + account_url"
            )
        if active_count > 1:
            raise ValueError("Multiple authentication methods configured. Provide exactly one.")
        return self


class KeyManagementSettings(BaseModel):
    """Key-management service used by EncryptingStorage.

    Providers:
    - aws: AWS KMS GenerateDataKey/Decrypt; key_id is a key id, ARN or alias
    - azure: Azure Key Vault key wrap/unwrap; key_id is the key identifier URL
    - local: AES key wrap with a locally held master key (development/testing)

    Example YAML:
        key_management:
          provider: aws
          key_id: "alias/strata"
          region: "eu-west-1"
    """

    model_config = {"frozen": True, "extra": "forbid"}

    provider: Literal["aws", "azure", "local"]
    key_id: str | None = Field(default=None, description="Master key identifier")
    region: str | None = Field(default=None, description="AWS region (aws provider)")
    endpoint_url: str | None = Field(default=None, description="Override KMS endpoint (aws provider)")
    master_key: str | None = Field(
        default=None,
        description="Base64 master key for the local provider, e.g. ${STRATA_MASTER_KEY}",
    )

    @model_validator(mode="after")
    def validate_provider_fields(self) -> Self:
        if self.provider in ("aws", "azure") and not self.key_id:
            raise ValueError(f"key_management provider '{self.provider}' requires key_id")
        if self.provider == "local":
            if not self.master_key:
                raise ValueError("key_management provider 'local' requires master_key")
            if len(self.master_key_bytes()) not in (16, 24, 32):
                raise ValueError("master_key must decode to 16, 24 or 32 bytes")
        return self

    def master_key_bytes(self) -> bytes:
        """Decode master_key.

        Raises:
            ValueError: If master_key is missing or not valid base64
        """
        if self.master_key is None:
            raise ValueError("master_key is not configured")
        try:
            return base64.b64decode(self.master_key, validate=True)
        except binascii.Error as e:
            raise ValueError(f"master_key is not valid base64: {e}") from e


class StrataSettings(BaseModel):
    """Top-level configuration.

    Example YAML:
        logging:
          level: DEBUG
        object_store: s3
        s3:
          bucket: "audit-events"
        collection:
          prefix: "events"
        key_management:
          provider: aws
          key_id: "alias/strata"
    """

    model_config = {"frozen": True, "extra": "forbid"}

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    collection: CollectionSettings = Field(default_factory=CollectionSettings)
    multiplexer: MultiplexerSettings = Field(default_factory=MultiplexerSettings)
    object_store: Literal["memory", "s3", "azure_blob"] = Field(
        default="memory",
        description="Which object store backs collections and ObjectStorage",
    )
    s3: S3Settings | None = None
    azure_blob: AzureBlobSettings | None = None
    key_management: KeyManagementSettings | None = None

    @model_validator(mode="after")
    def validate_object_store_section(self) -> Self:
        if self.object_store == "s3" and self.s3 is None:
            raise ValueError("object_store 's3' requires an s3 section")
        if self.object_store == "azure_blob" and self.azure_blob is None:
            raise ValueError("object_store 'azure_blob' requires an azure_blob section")
        return self


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values."""

    def replacer(match: re.Match[str]) -> str:
        env_value = os.environ.get(match.group(1))
        if env_value is not None:
            return env_value
        default = match.group(2)
        if default is not None:
            return default
        # No env var and no default - keep the placeholder (validation will likely reject it)
        return match.group(0)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _ENV_VAR_PATTERN.sub(replacer, value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lowercase_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lowercase_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_lowercase_keys(v) for v in value]
    return value


def load_settings(config_path: Path) -> StrataSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (STRATA_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: STRATA_COLLECTION__CONSOLIDATION_THRESHOLD
    for nested keys.

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Explicit check for file existence (Dynaconf silently accepts missing files)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="STRATA",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; convert to lowercase for Pydantic
    # and drop its internal settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k: v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _expand_env_vars(_lowercase_keys(raw_config))

    return StrataSettings(**raw_config)
