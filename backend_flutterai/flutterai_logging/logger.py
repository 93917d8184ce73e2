"""
Structured JSON logging: timestamp, wallet_id, event_type, queue/batch ids.

structlog with ISO timestamps, log level and consistent keys for aggregation.
All modules should use get_logger() and log an event_type (first arg) plus
wallet_id / queue_id / batch_id where relevant.

Uses only Python stdlib logging and structlog; no backend_flutterai imports to avoid circular imports.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog
from structlog._config import BoundLoggerLazyProxy

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)

# JSON output for production (LOG_FORMAT=json); human-readable for local
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()


def _add_timestamp(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Ensure timestamp is always present (ISO 8601)."""
    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _normalize_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Rename structlog 'event' to event_type; keep message if present."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "message" not in event_dict and "event_type" in event_dict:
        event_dict["message"] = str(event_dict["event_type"])
    return event_dict


def _shorten_wallet(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Truncate wallet_id to a prefix so logs stay greppable without full addresses."""
    wallet = event_dict.get("wallet_id")
    if isinstance(wallet, str) and len(wallet) > 16:
        event_dict["wallet_id"] = wallet[:16] + "..."
    return event_dict


def configure_structlog(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog: JSON or console renderer, timestamp, level, event_type."""
    level_value = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    fmt = (fmt or LOG_FORMAT).strip().lower()
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
        _normalize_event,
        _shorten_wallet,
    ]
    if fmt == "json":
        shared_processors.append(structlog.processors.JSONRenderer())
    else:
        shared_processors.append(
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        )
    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


# One-time configuration on first import
if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for the given module name. The logger is a lazy
    proxy: a later configure_structlog() call applies to loggers created at import.

        logger = get_logger(__name__)
        logger.info("wallet_scored", wallet_id=addr, social_credit_score=640)

    Output (JSON): {"event_type": "wallet_scored", "wallet_id": "...", "social_credit_score": 640,
    "timestamp": "...", "level": "info", "logger": "module.name"}
    """
    # Same proxy structlog.get_logger() builds; `logger` as a kwarg collides with wrap_logger's parameter.
    return BoundLoggerLazyProxy(
        None, logger_factory_args=(name,), initial_values={"logger": name}
    )


def bind_wallet(wallet_id: str, name: str = "backend_flutterai") -> structlog.BoundLogger:
    """Return a logger with wallet_id bound to all subsequent log calls."""
    return get_logger(name).bind(wallet_id=wallet_id)

