"""
Per-refresh log correlation.

A speedtest scrape or a timetable poll tick runs inside a
CorrelationContext; every log line it emits carries the same id. The
component name ("speedtest" or "timetable") is process-wide and set once
by the entry script.
"""
import logging
import uuid
from contextvars import ContextVar, Token
from typing import Optional

_refresh_id: ContextVar[Optional[str]] = ContextVar("refresh_id", default=None)

# Plain global: HTTP request threads start with an empty context
_component: Optional[str] = None


def generate_correlation_id() -> str:
    """New random id for one refresh (UUID4 text form)."""
    return str(uuid.uuid4())


def set_correlation_id(correlation_id: str) -> None:
    _refresh_id.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    """Id of the refresh running in this context, or None outside one."""
    return _refresh_id.get()


def clear_correlation_id() -> None:
    _refresh_id.set(None)


def set_component(component: Optional[str]) -> None:
    """Name the exporter this process runs; None unsets it."""
    global _component
    _component = component


def get_component() -> Optional[str]:
    return _component


class CorrelationFilter(logging.Filter):
    """Stamps ``correlation_id`` and ``component`` on each record (empty when unset)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _refresh_id.get() or ""
        record.component = _component or ""
        return True


class CorrelationContext:
    """
    Scope one refresh under a correlation id.

    Args:
        correlation_id: Id to use; a fresh one is generated when omitted

    Usage:
        with CorrelationContext():
            snapshot = refresher.refresh()
    """

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or generate_correlation_id()
        self._token: Optional[Token] = None

    def __enter__(self) -> "CorrelationContext":
        self._token = _refresh_id.set(self.correlation_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        _refresh_id.reset(self._token)
        self._token = None
