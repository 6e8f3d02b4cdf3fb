"""
Timer-mode refresher for the timetable exporter.

Polls the schedule file's modification time on a fixed interval and only
runs the decode pipeline when it changed. A failed load still records the
modification time, so an unfixed file is not re-parsed on every tick; the
next attempt happens once the file is touched again.

State machine:
    NO_SCHEDULE -> LOADED          first successful decode
    LOADED      -> LOADED          later successful decodes replace data
    LOADED      -> STALE           decode failure, previous data retained
    STALE       -> LOADED          next successful decode
"""
import threading
import time
from enum import Enum
from typing import Callable, Optional

from scrape_exporters.common.correlation import CorrelationContext
from scrape_exporters.common.exceptions import ExporterError, SourceError
from scrape_exporters.common.logging_config import get_logger
from scrape_exporters.common.sample import RawSample
from scrape_exporters.common.state import Snapshot, StateHolder, monotonic_duration
from scrape_exporters.timetable.decoder import Schedule, decode_schedule
from scrape_exporters.timetable.source import ScheduleFile

logger = get_logger(__name__)

DEFAULT_RELOAD_INTERVAL_SECONDS = 10.0


class ScheduleState(Enum):
    """Lifecycle of the published schedule"""
    NO_SCHEDULE = "no_schedule"
    LOADED = "loaded"
    STALE = "stale"


def schedule_state(snapshot: Snapshot[Schedule]) -> ScheduleState:
    if snapshot.record is None:
        return ScheduleState.NO_SCHEDULE
    if snapshot.failed:
        return ScheduleState.STALE
    return ScheduleState.LOADED


class ScheduleWatcher:
    """
    Daemon thread that reloads the schedule when the file changes.

    Args:
        source: ScheduleFile to watch
        state: State holder owned by the composition root
        interval: Polling interval in seconds
        decoder: RawSample -> Schedule

    Usage:
        watcher = ScheduleWatcher(ScheduleFile("events.yaml"), state)
        watcher.load_initial()
        watcher.start()
        ...
        watcher.stop()
    """

    def __init__(
        self,
        source: ScheduleFile,
        state: StateHolder[Schedule],
        interval: float = DEFAULT_RELOAD_INTERVAL_SECONDS,
        decoder: Callable[[RawSample], Schedule] = decode_schedule,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.source = source
        self.state = state
        self.interval = interval
        self.decoder = decoder
        self._last_mtime: Optional[int] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def last_mtime(self) -> Optional[int]:
        return self._last_mtime

    @property
    def current_state(self) -> ScheduleState:
        return schedule_state(self.state.read())

    def load_initial(self) -> bool:
        """
        Best-effort synchronous load at startup.

        Returns:
            True if a schedule was loaded
        """
        with CorrelationContext():
            loaded = self.poll_once()
        if loaded:
            logger.info(f"initially loaded {len(self.state.read().record)} events")
        else:
            logger.warning(f"initial load of {self.source.path} did not produce a schedule")
        return loaded

    def poll_once(self) -> bool:
        """
        Run one polling step.

        Returns:
            True if a new schedule was published
        """
        try:
            mtime = self.source.stat()
        except SourceError as e:
            logger.warning(str(e), extra={"path": e.path, "error_kind": e.kind})
            return False

        if mtime == self._last_mtime:
            return False

        start = time.monotonic()
        try:
            schedule = self.decoder(self.source.read())
        except ExporterError as e:
            # Remember the failed mtime: retry only once the file changes again
            self._last_mtime = mtime
            self.state.update(None, error=e, duration_seconds=monotonic_duration(start))
            logger.error(
                f"failed to load events from {self.source.path}: {e}",
                extra={"path": str(self.source.path), "error_kind": e.kind},
            )
            return False

        self.state.update(schedule, duration_seconds=monotonic_duration(start))
        self._last_mtime = mtime
        logger.info(f"loaded {len(schedule)} events from {self.source.path}")
        return True

    # -- Lifecycle ----------------------------------------------------------

    def start(self) -> None:
        """Start the polling daemon thread."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="schedule-watcher", daemon=True
        )
        self._thread.start()
        logger.info(
            f"ScheduleWatcher started (path={self.source.path}, interval={self.interval}s)"
        )

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the polling thread to stop and join it."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
        logger.info("ScheduleWatcher stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        """Main loop executed in the daemon thread."""
        while not self._stop_event.wait(self.interval):
            try:
                with CorrelationContext():
                    self.poll_once()
            except Exception as exc:
                logger.exception(f"ScheduleWatcher error: {exc}")
