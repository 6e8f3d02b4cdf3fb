"""
Metric publisher for the timetable exporter.

Reads the state holder once per scrape and emits one series per event for
each of the start, end, duration and active gauges.
"""
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from prometheus_client.core import Metric

from scrape_exporters.common.state import StateHolder
from scrape_exporters.monitoring.metrics import GaugeSpec, SnapshotCollector
from scrape_exporters.timetable.decoder import Schedule

EVENT_LABELS = ("id", "name", "location")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventCollector(SnapshotCollector):
    """
    Publishes the currently loaded schedule.

    Args:
        state: State holder written by the ScheduleWatcher
        namespace: Optional metric name prefix
        clock: Returns the scrape-time instant (UTC); injectable for tests
    """

    GAUGES = {
        "start": GaugeSpec(
            "event_start_seconds", "Event start time as Unix seconds", EVENT_LABELS,
        ),
        "end": GaugeSpec(
            "event_end_seconds", "Event end time as Unix seconds", EVENT_LABELS,
        ),
        "duration": GaugeSpec(
            "event_duration_seconds", "Event duration in seconds", EVENT_LABELS,
        ),
        "active": GaugeSpec(
            "event_active", "1 if event is active at scrape time, 0 otherwise", EVENT_LABELS,
        ),
    }

    def __init__(
        self,
        state: StateHolder[Schedule],
        namespace: str = "",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        super().__init__(namespace)
        self.state = state
        self.clock = clock or utc_now

    def collect(self) -> Iterable[Metric]:
        schedule = self.state.read().record
        items = schedule.items if schedule is not None else ()
        now = self.clock()

        start = self.family("start")
        end = self.family("end")
        duration = self.family("duration")
        active = self.family("active")

        for item in items:
            labels = item.labels
            start.add_metric(labels, item.start_seconds)
            end.add_metric(labels, item.end_seconds)
            duration.add_metric(labels, item.duration_seconds)
            active.add_metric(labels, 1.0 if item.is_active(now) else 0.0)

        return [start, end, duration, active]
