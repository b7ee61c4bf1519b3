"""
Unit tests for structured JSON logging (STORY-012).

Tests verify:
- JSONFormatter emits valid single-line JSON with the required fields.
- Exceptions are included as a formatted traceback.
- setup_logging installs exactly one JSON handler and quiets httpx.

CHANGELOG:
- 2026-10-02: Initial creation (STORY-012)

TODO:
- None
"""

import json
import logging
import sys

import pytest

from exporter.src.logging_config import JSONFormatter, setup_logging


def _record(msg: str = "hello world", level: int = logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="exporter.src.test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


@pytest.fixture()
def _restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestJSONFormatter:
    """JSONFormatter outputs valid JSON with required fields."""

    def test_format_returns_valid_json(self) -> None:
        output = JSONFormatter().format(_record())
        assert isinstance(json.loads(output), dict)
        assert "\n" not in output

    def test_format_contains_required_fields(self) -> None:
        parsed = json.loads(JSONFormatter().format(_record("scrape failed", logging.WARNING)))

        assert parsed["level"] == "WARNING"
        assert parsed["logger"] == "exporter.src.test"
        assert parsed["message"] == "scrape failed"
        assert parsed["timestamp"].endswith("+00:00")
        assert "exception" not in parsed

    def test_exception_included(self) -> None:
        try:
            raise ValueError("boom")
        except ValueError:
            exc_info = sys.exc_info()

        parsed = json.loads(JSONFormatter().format(_record(exc_info=exc_info)))

        assert "ValueError: boom" in parsed["exception"]


@pytest.mark.usefixtures("_restore_root_logger")
class TestSetupLogging:
    """setup_logging replaces root handlers with one JSON handler."""

    def test_single_json_handler(self) -> None:
        logging.getLogger().addHandler(logging.StreamHandler())

        setup_logging()

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0].formatter, JSONFormatter)

    def test_level_by_name(self) -> None:
        setup_logging("DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_httpx_quieted(self) -> None:
        setup_logging(logging.DEBUG)
        assert logging.getLogger("httpx").level == logging.WARNING
