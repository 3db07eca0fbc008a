"""
Logging for AvailNow: structlog in front of stdlib logging.

Every record, from structlog loggers or plain logging.getLogger(), goes
through one processor chain. Output is JSON when AVAILNOW_LOG_FORMAT=json,
console otherwise; the level comes from AVAILNOW_LOG_LEVEL.

OAuth secrets passed as event fields are masked before rendering.

Usage:
    from availnow.logging_config import setup_logging, get_logger
    setup_logging()
    log = get_logger(__name__)
    log.info("fetched events", provider="google", count=3)
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

REDACTED = "***"

SECRET_FIELDS = frozenset(
    {
        "access_token",
        "refresh_token",
        "client_secret",
        "code",
        "code_verifier",
        "master_key",
    }
)

# Third-party loggers held at WARNING or above
NOISY_LOGGERS = ("aiohttp.access", "uvicorn.access", "httpx")


def redact_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor that masks token-bearing fields."""
    for key in SECRET_FIELDS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def _resolve_level(level: str | None) -> int:
    name = level or os.environ.get("AVAILNOW_LOG_LEVEL", "INFO")
    return getattr(logging, name.upper(), logging.INFO)


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Configure structlog and the root logger. Safe to call more than once."""
    numeric_level = _resolve_level(level)
    if json_output is None:
        json_output = os.environ.get("AVAILNOW_LOG_FORMAT", "").lower() == "json"

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


__all__ = ["REDACTED", "get_logger", "redact_secrets", "setup_logging"]
