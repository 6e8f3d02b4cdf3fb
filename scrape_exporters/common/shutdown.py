"""
Process shutdown for the exporter entry scripts.

SIGINT/SIGTERM unblock ``wait_for_shutdown()`` and run the registered stop
callbacks in priority order: the HTTP listener first so no new scrape
starts, then the schedule watcher thread.
"""
import signal
import threading
import time
from enum import Enum
from typing import Callable, List, NamedTuple, Optional

from scrape_exporters.common.logging_config import get_logger

logger = get_logger(__name__)


class ShutdownState(Enum):
    """Shutdown manager states"""
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class _StopCallback(NamedTuple):
    priority: int
    name: str
    callback: Callable[[], None]


class ShutdownManager:
    """
    Process-wide stop coordinator (one instance per process).

    Priorities (lower runs first):
        0-9:   HTTP listener
        10-19: background refreshers
        20+:   anything else

    Usage:
        shutdown = ShutdownManager()
        shutdown.register(exporter.server.stop, priority=0, name="http-server")
        shutdown.register(exporter.watcher.stop, priority=10, name="schedule-watcher")
        shutdown.install_signal_handlers()
        shutdown.wait_for_shutdown()
    """

    _instance: Optional['ShutdownManager'] = None
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._initialized = False
                cls._instance = instance
            return cls._instance

    def __init__(self, timeout: float = 10):
        """
        Args:
            timeout: Overall budget in seconds for all stop callbacks
        """
        if self._initialized:
            return
        self._initialized = True

        self.timeout = timeout
        self.state = ShutdownState.RUNNING
        self._stops: List[_StopCallback] = []
        self._state_lock = threading.Lock()
        self._requested = threading.Event()

    @classmethod
    def reset(cls):
        """Forget the process instance (tests only)."""
        with cls._lock:
            cls._instance = None

    @property
    def is_running(self) -> bool:
        return self.state == ShutdownState.RUNNING

    def register(
        self,
        callback: Callable[[], None],
        priority: int = 20,
        name: str = "unnamed"
    ) -> None:
        """Add a no-argument stop callback."""
        self._stops.append(_StopCallback(priority, name, callback))
        self._stops.sort(key=lambda stop: stop.priority)
        logger.debug(f"stop callback registered: {name} (priority={priority})")

    def install_signal_handlers(self) -> None:
        for signum in (signal.SIGINT, signal.SIGTERM):
            signal.signal(signum, self._on_signal)

    def _on_signal(self, signum: int, frame) -> None:
        logger.info(f"received {signal.Signals(signum).name}, stopping exporter")
        self.initiate_shutdown()

    def initiate_shutdown(self) -> None:
        """Run every stop callback once; later calls are no-ops."""
        with self._state_lock:
            if self.state is not ShutdownState.RUNNING:
                logger.warning("shutdown already requested")
                return
            self.state = ShutdownState.SHUTTING_DOWN

        self._requested.set()
        self._run_stops()

        with self._state_lock:
            self.state = ShutdownState.STOPPED
        logger.info("exporter stopped")

    def _run_stops(self) -> None:
        deadline = time.monotonic() + self.timeout
        for stop in self._stops:
            if time.monotonic() >= deadline:
                skipped = [s.name for s in self._stops[self._stops.index(stop):]]
                logger.error(f"shutdown budget of {self.timeout}s spent, skipping {', '.join(skipped)}")
                return
            try:
                stop.callback()
            except Exception as e:
                logger.error(f"stop callback {stop.name} failed: {e}")
            else:
                logger.debug(f"stop callback done: {stop.name}")

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Block until shutdown is requested.

        Returns:
            True once requested, False if timeout elapsed first
        """
        return self._requested.wait(timeout=timeout)
