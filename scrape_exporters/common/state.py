"""
Last-known-good state shared between a refresher and the metric publisher.

The refresher is the only writer; every scrape thread is a reader. A
snapshot is an immutable value built outside the lock, so the write lock
only ever guards a reference swap.
"""
import threading
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Generic, Optional, TypeVar

RecordT = TypeVar("RecordT")


class ReadWriteLock:
    """
    Reader-writer lock: any number of concurrent readers, writers serialized
    and exclusive. Waiting writers block new readers so a steady stream of
    scrapes cannot starve the refresher.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @property
    def readers(self) -> int:
        return self._readers

    def read_locked(self) -> "_Guard":
        return _Guard(self.acquire_read, self.release_read)

    def write_locked(self) -> "_Guard":
        return _Guard(self.acquire_write, self.release_write)


class _Guard:
    def __init__(self, acquire, release) -> None:
        self._acquire = acquire
        self._release = release

    def __enter__(self) -> None:
        self._acquire()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._release()


@dataclass(frozen=True)
class Snapshot(Generic[RecordT]):
    """
    The currently published view of one exporter.

    record is None until the first successful refresh ("no data yet").
    error holds the most recent failure, cleared by the next success.
    """
    record: Optional[RecordT] = None
    error: Optional[Exception] = None
    updated_at: Optional[datetime] = None
    attempted_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    failure_count: int = 0

    @property
    def has_data(self) -> bool:
        return self.record is not None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        """Operator-facing summary used by the /status endpoint."""
        return {
            "loaded": self.has_data,
            "failed": self.failed,
            "updated_at": _iso(self.updated_at),
            "attempted_at": _iso(self.attempted_at),
            "duration_seconds": round(self.duration_seconds, 6),
            "failure_count": self.failure_count,
            "last_error": str(self.error) if self.error else None,
            "last_error_kind": getattr(self.error, "kind", None) if self.error else None,
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


class StateHolder(Generic[RecordT]):
    """
    Concurrency-safe handoff point between refresher and publisher.

    Usage:
        state = StateHolder()
        state.update(record)            # success: replace, clear error
        state.update(None, error=exc)   # failure: keep record, store error
        snap = state.read()
    """

    def __init__(self, clock=None) -> None:
        self._lock = ReadWriteLock()
        self._snapshot: Snapshot[RecordT] = Snapshot()
        # update() calls are serialized independently of readers so the
        # read-modify-write of failure_count never races
        self._update_lock = threading.Lock()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def update(
        self,
        record: Optional[RecordT],
        error: Optional[Exception] = None,
        duration_seconds: float = 0.0
    ) -> Snapshot[RecordT]:
        """
        Publish the outcome of one refresh attempt.

        Args:
            record: Freshly decoded record (ignored when error is set)
            error: Failure of this attempt, or None on success
            duration_seconds: Time spent producing this outcome

        Returns:
            The snapshot now visible to readers
        """
        with self._update_lock:
            current = self._snapshot
            now = self._clock()
            if error is None:
                if record is None:
                    raise ValueError("successful update requires a record")
                new = replace(
                    current,
                    record=record,
                    error=None,
                    updated_at=now,
                    attempted_at=now,
                    duration_seconds=duration_seconds,
                )
            else:
                new = replace(
                    current,
                    error=error,
                    attempted_at=now,
                    duration_seconds=duration_seconds,
                    failure_count=current.failure_count + 1,
                )

            with self._lock.write_locked():
                self._snapshot = new
            return new

    def read(self) -> Snapshot[RecordT]:
        """Return the current snapshot; never a partially applied update."""
        with self._lock.read_locked():
            return self._snapshot


def monotonic_duration(start: float) -> float:
    """Seconds elapsed since a time.monotonic() reading."""
    return max(0.0, time.monotonic() - start)
