"""
Test that flutterai_logging imports cleanly and the structured logger works.
"""

from __future__ import annotations


def test_logging_import():
    """Import get_logger from flutterai_logging and use the logger."""
    from backend_flutterai.flutterai_logging import get_logger

    logger = get_logger("test")
    assert logger is not None
    assert hasattr(logger, "info")
    assert hasattr(logger, "warning")
    assert hasattr(logger, "exception")
    logger.info("test_message", key="value")


def test_processors_rename_event_and_shorten_wallet():
    from backend_flutterai.flutterai_logging.logger import _add_timestamp, _normalize_event, _shorten_wallet

    event = {"event": "wallet_scored", "wallet_id": "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"}
    for processor in (_add_timestamp, _normalize_event, _shorten_wallet):
        event = processor(None, "info", event)

    assert event["event_type"] == "wallet_scored"
    assert event["message"] == "wallet_scored"
    assert "event" not in event
    assert event["wallet_id"] == "9QCfNuQuxct1Xk9y..."
    assert "timestamp" in event


def test_short_wallet_left_alone():
    from backend_flutterai.flutterai_logging.logger import _shorten_wallet

    assert _shorten_wallet(None, "info", {"wallet_id": "short"}) == {"wallet_id": "short"}


def test_reconfigure_applies_to_import_time_loggers():
    """Module loggers created at import follow a later configure_structlog() level."""
    from structlog.testing import capture_logs

    from backend_flutterai.flutterai_logging import configure_structlog
    from backend_flutterai.ingestion import collector

    try:
        configure_structlog("ERROR", "json")
        with capture_logs() as entries:
            collector.logger.info("filtered_out_event")
            collector.logger.error("kept_event", batch_id="b1")
    finally:
        configure_structlog()

    assert [e["event"] for e in entries] == ["kept_event"]
    assert entries[0]["logger"] == "backend_flutterai.ingestion.collector"
    assert entries[0]["batch_id"] == "b1"


def test_bind_wallet_binds_wallet_id():
    from structlog.testing import capture_logs

    from backend_flutterai.flutterai_logging import bind_wallet

    with capture_logs() as entries:
        bind_wallet("9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka", "tests.wallet").info("wallet_seen", source="manual_entry")

    assert entries == [
        {
            "event": "wallet_seen",
            "log_level": "info",
            "logger": "tests.wallet",
            "wallet_id": "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka",
            "source": "manual_entry",
        }
    ]
