"""Core infrastructure: hashing, canonical JSON, logging, configuration.

strata.core.factory (building clients from settings) is not re-exported
here because it depends on the backends package.
"""

from strata.core.canonical import canonical_json
from strata.core.config import (
    AzureBlobSettings,
    CollectionSettings,
    KeyManagementSettings,
    LoggingSettings,
    MultiplexerSettings,
    S3Settings,
    StrataSettings,
    load_settings,
)
from strata.core.hashing import DEFAULT_ALGORITHM, HashReference, compute_digest, digests_match, encode_reference
from strata.core.logging import configure_from_settings, configure_logging

__all__ = [
    "DEFAULT_ALGORITHM",
    "AzureBlobSettings",
    "CollectionSettings",
    "HashReference",
    "KeyManagementSettings",
    "LoggingSettings",
    "MultiplexerSettings",
    "S3Settings",
    "StrataSettings",
    "canonical_json",
    "compute_digest",
    "configure_from_settings",
    "configure_logging",
    "digests_match",
    "encode_reference",
    "load_settings",
]
