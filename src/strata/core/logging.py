# src/strata/core/logging.py
"""Structured logging for strata stacks.

Modules log through ``structlog.get_logger(__name__)``. configure_logging
takes the ``logging`` section of StrataSettings and routes both structlog
events and the stdlib records emitted by the cloud SDKs under our backends
(boto3, azure) through one ProcessorFormatter, so a stack produces a single
stream in one format.

Events carry references and sizes, never payloads. The credentials that
StrataSettings accepts (connection strings, SAS tokens, client secrets, the
local master key) are masked if they ever reach an event dict.
"""

import logging
import sys
from typing import IO, Any

import structlog
from structlog.stdlib import ProcessorFormatter

from strata.core.config import LoggingSettings, StrataSettings

__all__ = ["REDACTED", "configure_from_settings", "configure_logging"]

REDACTED = "***"

# Field names of the secrets StrataSettings can hold
_SECRET_FIELDS = frozenset(
    {
        "connection_string",
        "sas_token",
        "client_secret",
        "master_key",
        "plaintext",
    }
)

# SDK loggers kept at WARNING or above: per-request HTTP and retry chatter
_NOISY_LOGGERS: tuple[str, ...] = (
    "boto3",
    "botocore",
    "s3transfer",
    "azure",
    "azure.core.pipeline.policies.http_logging_policy",
    "azure.identity",
    "urllib3",
)


def _mask_secrets(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    for key in _SECRET_FIELDS.intersection(event_dict):
        if event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def _remove_internal_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Drop ProcessorFormatter's bookkeeping keys (always present)."""
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def configure_logging(settings: LoggingSettings | None = None, *, stream: IO[str] | None = None) -> None:
    """Configure structlog and stdlib logging.

    Args:
        settings: Level and output format; defaults to INFO console output.
        stream: Where records go (stdout if omitted).
    """
    settings = settings or LoggingSettings()
    log_level = logging.getLevelNamesMapping()[settings.level]

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        _mask_secrets,
    ]

    renderer: list[Any]
    if settings.json_output:
        renderer = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer(sort_keys=True)]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=False)]

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfigurable: tests call this repeatedly
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        ProcessorFormatter(
            processors=[_remove_internal_fields, *renderer],
            foreign_pre_chain=shared_processors,
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    sdk_level = max(log_level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(sdk_level)


def configure_from_settings(settings: StrataSettings, *, stream: IO[str] | None = None) -> None:
    """Apply the ``logging`` section of a loaded StrataSettings."""
    configure_logging(settings.logging, stream=stream)
    structlog.get_logger(__name__).debug(
        "logging_configured",
        level=settings.logging.level,
        json_output=settings.logging.json_output,
        object_store=settings.object_store,
    )
