"""
Centralized logging configuration for link360.

This module sets up structured logging with:
- Settings-based configuration (dev vs production)
- JSON formatting for production, pretty console for development
- Redaction of tokens and secrets before anything is rendered
- Sampling rate configuration for high-frequency events

``setup_logging`` is called once from ``create_app``; importing this module
has no side effects.
"""

from __future__ import annotations

import hashlib
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import structlog
from structlog.types import EventDict, Processor

if TYPE_CHECKING:
    from config import LoggingSettings


# Sampling rates for high-frequency events; overwritten by setup_logging()
SAMPLING_RATES: dict[str, float] = {
    "url_redirect": 0.05,
    "impression": 0.05,
    "realtime_publish": 0.01,
}

# Sensitive fields to redact from logs
REDACTED_FIELDS = {
    "password",
    "token",
    "authorization",
    "cookie",
    "secret",
    "private_key",
    "public_key",
}

_is_production = False


def hash_ip(ip_address: str) -> str:
    """
    Hash IP address for privacy in production.

    In production, returns SHA-256 hash (first 16 chars).
    In development, returns the original IP for easier debugging.
    """
    if _is_production and ip_address:
        return hashlib.sha256(ip_address.encode()).hexdigest()[:16]
    return ip_address


def add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ISO format timestamp to event dict."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Redact sensitive fields from logs."""
    for key in list(event_dict.keys()):
        if key in ("level", "event", "timestamp", "logger"):
            continue
        lowered = key.lower()
        if lowered in REDACTED_FIELDS or any(
            sensitive in lowered for sensitive in ("password", "token", "secret")
        ):
            event_dict[key] = "***REDACTED***"
    return event_dict


def configure_structlog(log_format: str = "console") -> None:
    """
    Configure structlog with appropriate processors for the environment.

    Production: JSON formatting for easy parsing
    Development: Pretty console formatting with colors
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_timestamp,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            pad_event=15,
            sort_keys=False,
        )

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_stdlib_logging(log_level: str = "INFO") -> None:
    """
    Configure standard library logging to work with structlog.

    Third-party libraries that are chatty at DEBUG are held at WARNING.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("pymongo.topology").setLevel(logging.WARNING)
    logging.getLogger("pymongo.serverSelection").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def setup_logging(
    settings: Optional["LoggingSettings"] = None, *, production: bool = False
) -> None:
    """
    Initialize logging system for the application.

    This is the main entry point for logging configuration and should be
    called early in application startup.
    """
    global _is_production
    _is_production = production

    log_level = settings.log_level if settings else "INFO"
    log_format = settings.log_format if settings else "console"
    if settings is not None:
        SAMPLING_RATES.update(
            {
                "url_redirect": settings.sample_rate_redirect,
                "impression": settings.sample_rate_impression,
                "realtime_publish": settings.sample_rate_publish,
            }
        )

    configure_stdlib_logging(log_level)
    configure_structlog(log_format)

    structlog.get_logger(__name__).info(
        "logging_initialized",
        production=production,
        log_level=log_level,
        log_format=log_format,
    )
