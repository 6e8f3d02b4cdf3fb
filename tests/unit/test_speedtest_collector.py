"""
Unit tests for OnDemandRefresher and SpeedtestCollector.
"""
import threading
from unittest.mock import MagicMock

import pytest
from prometheus_client import CollectorRegistry

from scrape_exporters.common.exceptions import SourceTimeoutError, SourceUnavailableError
from scrape_exporters.common.sample import RawSample
from scrape_exporters.common.state import StateHolder
from scrape_exporters.speedtest.collector import OnDemandRefresher, SpeedtestCollector

MEASUREMENT_METRICS = {
    "download_bandwidth_bits_per_second",
    "upload_bandwidth_bits_per_second",
    "download_latency_seconds",
    "upload_latency_seconds",
    "ping_latency_seconds",
    "ping_jitter_seconds",
    "packet_loss_ratio",
}


@pytest.fixture
def runner(speedtest_json):
    mock = MagicMock()
    mock.run.return_value = RawSample(payload=speedtest_json, source="speedtest")
    return mock


@pytest.fixture
def state():
    return StateHolder()


def build(runner, state, namespace=""):
    registry = CollectorRegistry()
    collector = SpeedtestCollector(OnDemandRefresher(runner, state), namespace=namespace)
    collector.register(registry)
    return registry, collector


def family_names(registry):
    return {metric.name for metric in registry.collect()}


class TestSuccessfulScrape:
    """Full metric set after a good run"""

    def test_exact_values(self, runner, state):
        registry, _ = build(runner, state)
        # Single collect so every value comes from one run
        samples = {
            (s.name, tuple(sorted(s.labels.items()))): s.value
            for family in registry.collect() for s in family.samples
        }

        assert samples[("download_bandwidth_bits_per_second", ())] == 8_000_000
        assert samples[("upload_bandwidth_bits_per_second", ())] == 2_000_000
        assert samples[("download_latency_seconds", (("stat", "iqm"),))] == 1.0
        assert samples[("upload_latency_seconds", (("stat", "jitter"),))] == pytest.approx(0.008)
        assert samples[("ping_latency_seconds", (("stat", "latency"),))] == pytest.approx(0.012)
        assert samples[("ping_jitter_seconds", ())] == pytest.approx(0.0005)
        assert samples[("packet_loss_ratio", ())] == 1.5
        assert samples[("scrape_success", ())] == 1.0
        assert samples[("scrape_duration_seconds", ())] >= 0.0
        assert runner.run.call_count == 1

    def test_stat_label_sets(self, runner, state):
        registry, _ = build(runner, state)
        stats = {}
        for family in registry.collect():
            stats[family.name] = {s.labels.get("stat") for s in family.samples}
        assert stats["download_latency_seconds"] == {"iqm", "low", "high", "jitter"}
        assert stats["upload_latency_seconds"] == {"iqm", "low", "high", "jitter"}
        assert stats["ping_latency_seconds"] == {"latency", "low", "high"}

    def test_all_metrics_present(self, runner, state):
        registry, _ = build(runner, state)
        assert family_names(registry) == MEASUREMENT_METRICS | {
            "scrape_success", "scrape_duration_seconds",
        }

    def test_state_updated(self, runner, state):
        registry, _ = build(runner, state)
        list(registry.collect())
        snap = state.read()
        assert snap.record.download_bandwidth_bps == 8_000_000
        assert snap.error is None

    def test_each_scrape_runs_the_command(self, runner, state):
        registry, _ = build(runner, state)
        list(registry.collect())
        list(registry.collect())
        assert runner.run.call_count == 2

    def test_namespace_prefix(self, runner, state):
        registry, _ = build(runner, state, namespace="speedtest")
        assert registry.get_sample_value("speedtest_scrape_success") == 1.0
        assert registry.get_sample_value("speedtest_download_bandwidth_bits_per_second") == 8_000_000


class TestFailedScrape:
    """Failures surface only through scrape_success=0"""

    def test_source_failure(self, runner, state):
        runner.run.side_effect = SourceUnavailableError(
            "command failed: exit status 1", command="speedtest", args=["-f"], output="boom"
        )
        registry, _ = build(runner, state)

        families = {m.name: m for m in registry.collect()}
        assert set(families) == {"scrape_success", "scrape_duration_seconds"}
        assert families["scrape_success"].samples[0].value == 0.0
        assert families["scrape_duration_seconds"].samples[0].value >= 0.0

    def test_timeout_recorded_on_state(self, runner, state):
        runner.run.side_effect = SourceTimeoutError("command timed out after 90s")
        registry, _ = build(runner, state)
        list(registry.collect())
        snap = state.read()
        assert isinstance(snap.error, SourceTimeoutError)
        assert snap.failure_count == 1

    def test_decode_failure(self, runner, state):
        runner.run.return_value = RawSample(payload=b'{"download": {"bandwidth": 0}}', source="x")
        registry, _ = build(runner, state)
        assert registry.get_sample_value("scrape_success") == 0.0
        assert registry.get_sample_value("download_bandwidth_bits_per_second") is None

    def test_failure_after_success_keeps_last_good_record(self, runner, state, speedtest_json):
        registry, _ = build(runner, state)
        list(registry.collect())
        good = state.read().record

        runner.run.side_effect = SourceTimeoutError("timed out")
        assert registry.get_sample_value("scrape_success") == 0.0
        assert state.read().record is good

    def test_recovers_on_next_scrape(self, runner, state, speedtest_json):
        runner.run.side_effect = [
            SourceUnavailableError("nope"),
            RawSample(payload=speedtest_json, source="speedtest"),
        ]
        registry, _ = build(runner, state)
        assert registry.get_sample_value("scrape_success") == 0.0
        assert registry.get_sample_value("scrape_success") == 1.0


class TestConcurrentScrapes:
    """Concurrent scrapes each run their own invocation"""

    def test_not_coalesced(self, runner, state):
        registry, _ = build(runner, state)
        barrier = threading.Barrier(4)
        results = []

        def scrape():
            barrier.wait()
            results.append(registry.get_sample_value("scrape_success"))

        threads = [threading.Thread(target=scrape) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert results == [1.0] * 4
        assert runner.run.call_count == 4


def test_register_does_not_run_command(runner, state):
    build(runner, state)
    runner.run.assert_not_called()
