"""Tests for structured logging setup."""

import json

import pytest
import structlog

from research_ledger.observability.context import clear_correlation_id, correlation_id_context
from research_ledger.observability.logging import (
    add_correlation_id_processor,
    configure_logging,
    log_context,
)


@pytest.fixture(autouse=True)
def reset_structlog():
    clear_correlation_id()
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
    clear_correlation_id()
    structlog.reset_defaults()


def _last_entry(capsys):
    return json.loads(capsys.readouterr().err.strip().splitlines()[-1])


class TestAddCorrelationIdProcessor:
    def test_adds_correlation_id_when_set(self):
        with correlation_id_context("test-corr-id"):
            result = add_correlation_id_processor(None, "info", {"event": "test_event"})

        assert result["correlation_id"] == "test-corr-id"

    def test_adds_none_marker_when_not_set(self):
        result = add_correlation_id_processor(None, "info", {"event": "test_event"})

        assert result["correlation_id"] == "none"

    def test_preserves_existing_fields(self):
        result = add_correlation_id_processor(
            None, "info", {"event": "test", "research_item_id": 12}
        )

        assert result["event"] == "test"
        assert result["research_item_id"] == 12


class TestConfigureLogging:
    def test_json_output(self, capsys):
        configure_logging(level="INFO", json_output=True)

        with correlation_id_context("cli-test"):
            structlog.get_logger().info("research_item_verified", research_item_id=12)

        entry = _last_entry(capsys)
        assert entry["event"] == "research_item_verified"
        assert entry["research_item_id"] == 12
        assert entry["correlation_id"] == "cli-test"
        assert entry["level"] == "info"
        assert "timestamp" in entry

    def test_respects_log_level(self, capsys):
        configure_logging(level="WARNING", json_output=True)

        logger = structlog.get_logger()
        logger.info("hidden_event")
        logger.warning("shown_event")

        err = capsys.readouterr().err
        assert "hidden_event" not in err
        assert "shown_event" in err

    def test_unknown_level_falls_back_to_info(self, capsys):
        configure_logging(level="VERBOSE", json_output=True)

        logger = structlog.get_logger()
        logger.debug("hidden_event")
        logger.info("shown_event")

        err = capsys.readouterr().err
        assert "hidden_event" not in err
        assert "shown_event" in err

    def test_without_timestamp(self, capsys):
        configure_logging(level="INFO", json_output=True, add_timestamp=False)

        structlog.get_logger().info("no_time")

        assert "timestamp" not in _last_entry(capsys)

    def test_console_output(self, capsys):
        configure_logging(level="DEBUG", json_output=False)

        structlog.get_logger().debug("console_event")

        assert "console_event" in capsys.readouterr().err


class TestLogContext:
    def test_binds_keys_inside_block(self, capsys):
        configure_logging(level="DEBUG", json_output=True)

        with log_context(bulk_action="unverify", research_entity_id=3):
            structlog.get_logger().info("bulk_item_failed", item_id=12)

        entry = _last_entry(capsys)
        assert entry["bulk_action"] == "unverify"
        assert entry["research_entity_id"] == 3
        assert entry["item_id"] == 12

    def test_keys_removed_after_block(self, capsys):
        configure_logging(level="DEBUG", json_output=True)

        with log_context(command="db_init"):
            pass
        structlog.get_logger().info("after_block")

        assert "command" not in _last_entry(capsys)
