"""Tests for centralized logging configuration."""

import json
import logging
import sys
from unittest.mock import MagicMock, patch

from mintchat.core.logging_config import CorrelationIDFilter, JSONFormatter, setup_logging
from mintchat.core.middleware import correlation_id_var


def _record(msg: str = "Test message", level: int = logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="test.logger",
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJSONFormatter:
    def test_formats_as_json(self):
        result = json.loads(JSONFormatter().format(_record()))
        assert result["message"] == "Test message"
        assert result["level"] == "INFO"
        assert result["logger"] == "test.logger"
        assert "timestamp" in result

    def test_includes_exception_info(self):
        try:
            raise ValueError("test error")
        except ValueError:
            record = _record("Error occurred", logging.ERROR, sys.exc_info())
        result = json.loads(JSONFormatter().format(record))
        assert "exception" in result
        assert "ValueError" in result["exception"]

    def test_excludes_exception_when_none(self):
        result = json.loads(JSONFormatter().format(_record("No error")))
        assert "exception" not in result

    def test_includes_extra_fields(self):
        record = _record("With extras")
        record.wallet = "0xa11ce"
        record.conversation_id = "conv-1"
        record.path = "/api/v1/conversations"
        result = json.loads(JSONFormatter().format(record))
        assert result["wallet"] == "0xa11ce"
        assert result["conversation_id"] == "conv-1"
        assert result["path"] == "/api/v1/conversations"

    def test_includes_correlation_id(self):
        record = _record()
        record.correlation_id = "req-123"
        result = json.loads(JSONFormatter().format(record))
        assert result["correlation_id"] == "req-123"

    def test_omits_placeholder_correlation_id(self):
        record = _record()
        record.correlation_id = "-"
        result = json.loads(JSONFormatter().format(record))
        assert "correlation_id" not in result


class TestCorrelationIDFilter:
    def test_injects_current_correlation_id(self):
        token = correlation_id_var.set("req-abc")
        try:
            record = _record()
            assert CorrelationIDFilter().filter(record) is True
            assert record.correlation_id == "req-abc"
        finally:
            correlation_id_var.reset(token)

    def test_placeholder_outside_request(self):
        record = _record()
        CorrelationIDFilter().filter(record)
        assert record.correlation_id == "-"


class TestSetupLogging:
    def teardown_method(self):
        """Reset root logger after each test."""
        root = logging.getLogger()
        root.handlers.clear()
        root.setLevel(logging.WARNING)

    @patch("mintchat.core.logging_config.get_settings")
    def test_debug_mode_uses_readable_format(self, mock_settings):
        mock_settings.return_value = MagicMock(debug=True)
        setup_logging()
        root = logging.getLogger()
        assert len(root.handlers) >= 1
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)

    @patch("mintchat.core.logging_config.get_settings")
    def test_production_mode_uses_json(self, mock_settings):
        mock_settings.return_value = MagicMock(debug=False)
        setup_logging()
        root = logging.getLogger()
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    @patch("mintchat.core.logging_config.get_settings")
    def test_level_override(self, mock_settings):
        mock_settings.return_value = MagicMock(debug=False)
        setup_logging(level="WARNING")
        root = logging.getLogger()
        assert root.level == logging.WARNING

    @patch("mintchat.core.logging_config.get_settings")
    def test_quiets_noisy_loggers(self, mock_settings):
        mock_settings.return_value = MagicMock(debug=False)
        setup_logging()
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
