"""
Unit tests for structured JSON logging configuration.
"""
import io
import json
import logging

from scrape_exporters.common.correlation import CorrelationFilter, CorrelationContext
from scrape_exporters.common.logging_config import (
    JSONFormatter,
    configure_logging,
    get_logger,
    setup_logging,
)


def _record(msg="msg", level=logging.INFO, **extra):
    record = logging.LogRecord(
        name="test.logger", level=level, pathname="test.py",
        lineno=42, msg=msg, args=(), exc_info=None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Test JSONFormatter output"""

    def setup_method(self):
        self.formatter = JSONFormatter()

    def test_format_basic_fields(self):
        data = json.loads(self.formatter.format(_record("loaded 3 events")))

        assert data["level"] == "INFO"
        assert data["logger"] == "test.logger"
        assert data["message"] == "loaded 3 events"
        assert data["line"] == 42
        assert data["timestamp"].endswith("Z")

    def test_format_includes_correlation_and_component(self):
        data = json.loads(self.formatter.format(
            _record(correlation_id="abc-123", component="timetable")
        ))
        assert data["correlation_id"] == "abc-123"
        assert data["component"] == "timetable"

    def test_format_excludes_empty_correlation_id(self):
        data = json.loads(self.formatter.format(_record(correlation_id="")))
        assert "correlation_id" not in data

    def test_format_includes_source_diagnostics(self):
        data = json.loads(self.formatter.format(
            _record(command="speedtest -f json-pretty", error_kind="source_timeout")
        ))
        assert data["command"] == "speedtest -f json-pretty"
        assert data["error_kind"] == "source_timeout"

    def test_format_includes_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            import sys
            exc_info = sys.exc_info()
        record = _record(level=logging.ERROR)
        record.exc_info = exc_info
        data = json.loads(self.formatter.format(record))
        assert "ValueError: boom" in data["exception"]


class TestSetupLogging:
    """Test setup_logging and get_logger"""

    def test_sets_level_and_json_formatter(self):
        logger = setup_logging("test.setup", level="WARNING")
        assert logger.level == logging.WARNING
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.propagate is False

    def test_text_format(self):
        logger = setup_logging("test.text", fmt="text")
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_no_duplicate_handlers(self):
        setup_logging("test.dedup")
        logger = setup_logging("test.dedup")
        assert len(logger.handlers) == 1

    def test_attaches_correlation_filter(self):
        logger = get_logger("test.get_corr")
        assert any(isinstance(f, CorrelationFilter) for f in logger.filters)

    def test_configure_logging_updates_existing_loggers(self):
        logger = get_logger("test.reconfigure")
        configure_logging("DEBUG", "json")
        try:
            assert logger.level == logging.DEBUG
        finally:
            configure_logging("INFO", "json")

    def test_log_line_carries_correlation_id(self):
        logger = setup_logging("test.stream")
        stream = io.StringIO()
        logger.handlers[0].setStream(stream)

        with CorrelationContext("tick-7"):
            logger.info("polling")

        data = json.loads(stream.getvalue().strip())
        assert data["correlation_id"] == "tick-7"
        assert data["message"] == "polling"
