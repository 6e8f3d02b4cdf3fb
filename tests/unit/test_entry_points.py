"""
Unit tests for the exporter entry scripts: startup validation and /status.
"""
from unittest.mock import MagicMock

import pytest

import speedtest_exporter
import timetable_exporter
from scrape_exporters.common.exceptions import DecodeMalformedError
from scrape_exporters.timetable.decoder import Schedule
from timetable_exporter import TimetableExporter

ENV_VARS = [
    "SPEEDTEST_COMMAND", "SPEEDTEST_ARGS", "SPEEDTEST_TIMEOUT", "SPEEDTEST_METRIC_NAMESPACE",
    "LISTEN_ADDRESS",
    "TIMETABLE_LISTEN_ADDRESS", "TIMETABLE_EVENTS_PATH", "TIMETABLE_RELOAD_INTERVAL",
    "TIMETABLE_METRIC_NAMESPACE",
    "LOG_LEVEL", "LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestTimetableMain:

    def test_zero_reload_interval_in_env(self, monkeypatch):
        monkeypatch.setenv("TIMETABLE_RELOAD_INTERVAL", "0")
        assert timetable_exporter.main([]) == 2

    def test_unknown_log_level_in_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "bogus")
        assert timetable_exporter.main([]) == 2

    def test_bad_listen_flag(self, tmp_path):
        events = str(tmp_path / "events.yaml")
        assert timetable_exporter.main(["--listen", "nope", "--events", events]) == 2

    def test_zero_reload_interval_flag(self, tmp_path):
        events = str(tmp_path / "events.yaml")
        assert timetable_exporter.main(
            ["--listen", "127.0.0.1:0", "--events", events, "--reload-interval", "0"]
        ) == 2


class TestSpeedtestMain:

    def test_unknown_log_level_in_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "bogus")
        assert speedtest_exporter.main([]) == 2

    def test_bad_listen_address_in_env(self, monkeypatch):
        monkeypatch.setenv("LISTEN_ADDRESS", "9801")
        assert speedtest_exporter.main([]) == 2

    def test_unknown_log_level_flag(self):
        with pytest.raises(SystemExit) as exc_info:
            speedtest_exporter.main(["--log-level", "loud"])
        assert exc_info.value.code == 2


class TestTimetableStatus:

    def test_status_reads_state_once(self, tmp_path):
        exporter = TimetableExporter(str(tmp_path / "events.yaml"), listen_address="127.0.0.1:0")
        exporter.state.update(Schedule(items=()))
        exporter.state.update(None, error=DecodeMalformedError("bad"))
        exporter.state.read = MagicMock(side_effect=exporter.state.read)

        report = exporter.status()

        assert exporter.state.read.call_count == 1
        assert report["schedule_state"] == "stale"
        assert report["events"] == 0
        assert report["failure_count"] == 1
