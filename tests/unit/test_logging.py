"""Unit tests for structlog configuration."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from complyx.utils.logging import NOISY_LOGGERS, configure_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    sdk_levels = {name: logging.getLogger(name).level for name in NOISY_LOGGERS}
    yield
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)
    for name, sdk_level in sdk_levels.items():
        logging.getLogger(name).setLevel(sdk_level)


def _json_lines(out: str) -> list[dict]:
    return [json.loads(line) for line in out.splitlines() if line.startswith("{")]


class TestConfigureLogging:
    def test_json_events_carry_service_name(self, capsys) -> None:
        configure_logging(json_output=True, service="complyx-cli")
        structlog.get_logger(logger_name="test").info("feed_run_complete", feed_id="f1")

        [event] = _json_lines(capsys.readouterr().out)
        assert event["event"] == "feed_run_complete"
        assert event["service"] == "complyx-cli"
        assert event["feed_id"] == "f1"
        assert event["level"] == "info"

    def test_bound_service_is_not_overwritten(self, capsys) -> None:
        configure_logging(json_output=True)
        structlog.get_logger().info("custom", service="worker")

        [event] = _json_lines(capsys.readouterr().out)
        assert event["service"] == "worker"

    def test_exception_is_structured_in_json(self, capsys) -> None:
        configure_logging(json_output=True)
        log = structlog.get_logger()
        try:
            raise RuntimeError("parser blew up")
        except RuntimeError:
            log.exception("feed_item_crashed")

        [event] = _json_lines(capsys.readouterr().out)
        assert event["event"] == "feed_item_crashed"
        assert event["exception"][0]["exc_type"] == "RuntimeError"
        assert event["exception"][0]["exc_value"] == "parser blew up"

    def test_level_filters_events(self, capsys) -> None:
        configure_logging(log_level="WARNING", json_output=True)
        log = structlog.get_logger()
        log.info("dropped")
        log.warning("kept")

        assert [e["event"] for e in _json_lines(capsys.readouterr().out)] == ["kept"]

    def test_sdk_loggers_quieted(self) -> None:
        configure_logging(log_level="INFO")
        assert logging.getLogger("chromadb").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger().level == logging.INFO

    def test_sdk_loggers_follow_debug(self) -> None:
        configure_logging(log_level="debug")
        assert all(logging.getLogger(name).level == logging.DEBUG for name in NOISY_LOGGERS)
