"""
Unit tests for the timetable EventCollector.
"""
from datetime import datetime, timedelta, timezone

import pytest
from prometheus_client import CollectorRegistry

from scrape_exporters.common.exceptions import DecodeMalformedError
from scrape_exporters.common.state import StateHolder
from scrape_exporters.timetable.collector import EventCollector
from scrape_exporters.timetable.decoder import Schedule, ScheduleItem

T0 = datetime(2025, 9, 20, 1, 0, 0, tzinfo=timezone.utc)
T1 = datetime(2025, 9, 20, 2, 0, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def item(id_, start=T0, end=T1, name="Talk", location="Room 1"):
    return ScheduleItem(id=id_, name=name, location=location, start=start, end=end)


def labels(id_, name="Talk", location="Room 1"):
    return {"id": id_, "name": name, "location": location}


@pytest.fixture
def state():
    return StateHolder()


@pytest.fixture
def clock():
    return Clock(T0 + timedelta(minutes=10))


@pytest.fixture
def registry(state, clock):
    registry = CollectorRegistry()
    EventCollector(state, clock=clock).register(registry)
    return registry


class TestEventCollector:

    def test_no_schedule_emits_no_series(self, registry):
        families = list(registry.collect())
        assert {f.name for f in families} == {
            "event_start_seconds", "event_end_seconds",
            "event_duration_seconds", "event_active",
        }
        assert all(not f.samples for f in families)

    def test_series_per_item(self, registry, state):
        state.update(Schedule(items=(item("a"), item("b", location="Room 2"))))

        assert registry.get_sample_value("event_start_seconds", labels("a")) == T0.timestamp()
        assert registry.get_sample_value("event_end_seconds", labels("a")) == T1.timestamp()
        assert registry.get_sample_value("event_duration_seconds", labels("a")) == 3600.0
        assert registry.get_sample_value("event_active", labels("a")) == 1.0
        assert registry.get_sample_value("event_active", labels("b", location="Room 2")) == 1.0

    def test_exactly_one_series_per_item_per_metric(self, registry, state):
        state.update(Schedule(items=tuple(item(str(i)) for i in range(5))))
        for family in registry.collect():
            assert sorted(s.labels["id"] for s in family.samples) == ["0", "1", "2", "3", "4"]

    @pytest.mark.parametrize("offset,expected", [
        (timedelta(0), 1.0),
        (T1 - T0, 1.0),
        (timedelta(minutes=30), 1.0),
        (-timedelta(microseconds=1), 0.0),
        (T1 - T0 + timedelta(microseconds=1), 0.0),
        (-timedelta(days=1), 0.0),
    ])
    def test_active_boundaries(self, registry, state, clock, offset, expected):
        state.update(Schedule(items=(item("a"),)))
        clock.now = T0 + offset
        assert registry.get_sample_value("event_active", labels("a")) == expected

    def test_end_before_start_duration_clamped(self, registry, state):
        state.update(Schedule(items=(item("r", start=T1, end=T0),)))
        assert registry.get_sample_value("event_duration_seconds", labels("r")) == 0.0

    def test_stale_schedule_still_served(self, registry, state):
        state.update(Schedule(items=(item("a"),)))
        state.update(None, error=DecodeMalformedError("bad"))
        assert registry.get_sample_value("event_start_seconds", labels("a")) == T0.timestamp()

    def test_namespace(self, state, clock):
        registry = CollectorRegistry()
        EventCollector(state, namespace="time_table", clock=clock).register(registry)
        state.update(Schedule(items=(item("a"),)))
        assert registry.get_sample_value("time_table_event_active", labels("a")) == 1.0

    def test_independent_instances(self, clock):
        first, second = StateHolder(), StateHolder()
        reg1, reg2 = CollectorRegistry(), CollectorRegistry()
        EventCollector(first, clock=clock).register(reg1)
        EventCollector(second, clock=clock).register(reg2)

        first.update(Schedule(items=(item("only-first"),)))

        assert reg1.get_sample_value("event_active", labels("only-first")) == 1.0
        assert reg2.get_sample_value("event_active", labels("only-first")) is None
