"""
Structured logging configuration using JSON format.
Provides consistent logging across both exporters with correlation ID support.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Optional, Set

from scrape_exporters.common.correlation import CorrelationFilter

TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(component)s] %(name)s: %(message)s"

# Defaults applied to loggers created through get_logger()
_default_level = "INFO"
_default_format = "json"
_managed: Set[str] = set()


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging with correlation tracking"""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON with correlation and component fields"""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        correlation_id = getattr(record, 'correlation_id', None)
        if correlation_id:
            log_data['correlation_id'] = correlation_id

        component = getattr(record, 'component', None)
        if component:
            log_data['component'] = component

        # Source diagnostics attached via `extra=`
        for key in ("command", "path", "error_kind"):
            value = getattr(record, key, None)
            if value:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def _make_formatter(fmt: str) -> logging.Formatter:
    if fmt.lower() == "text":
        return logging.Formatter(TEXT_FORMAT)
    return JSONFormatter()


def setup_logging(
    name: str,
    level: str = "INFO",
    fmt: Optional[str] = None
) -> logging.Logger:
    """
    Configure structured logging for a component.

    Args:
        name: Logger name (usually __name__)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        fmt: "json" (default) or "text"

    Returns:
        Configured logger instance with correlation filter
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_make_formatter(fmt or _default_format))
    # Filter on the handler so records from child loggers are stamped too
    handler.addFilter(CorrelationFilter())
    logger.addHandler(handler)

    if not any(isinstance(f, CorrelationFilter) for f in logger.filters):
        logger.addFilter(CorrelationFilter())

    logger.propagate = False
    _managed.add(name)

    return logger


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get or create a logger with optional level override.

    Args:
        name: Logger name
        level: Optional log level override

    Returns:
        Logger instance with correlation filter
    """
    if level:
        return setup_logging(name, level)

    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logging(name, _default_level)

    if not any(isinstance(f, CorrelationFilter) for f in logger.filters):
        logger.addFilter(CorrelationFilter())

    return logger


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """
    Apply process-wide logging defaults.

    Re-configures every logger already created through get_logger() so
    module-level loggers pick up LOG_LEVEL / LOG_FORMAT from settings.
    """
    global _default_level, _default_format
    _default_level = level
    _default_format = fmt
    for name in list(_managed):
        setup_logging(name, level, fmt)
