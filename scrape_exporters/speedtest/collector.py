"""
On-demand refresher and metric publisher for the speedtest exporter.

Every scrape runs the CLI inline. Concurrent scrapes are not coalesced:
each one triggers its own invocation and publishes its own outcome.
"""
import time
from typing import Callable, Iterable, Optional

from prometheus_client.core import Metric

from scrape_exporters.common.correlation import CorrelationContext
from scrape_exporters.common.exceptions import ExporterError, SourceError
from scrape_exporters.common.logging_config import get_logger
from scrape_exporters.common.sample import RawSample
from scrape_exporters.common.state import Snapshot, StateHolder, monotonic_duration
from scrape_exporters.monitoring.metrics import GaugeSpec, SnapshotCollector
from scrape_exporters.speedtest.decoder import SpeedtestMeasurement, decode_speedtest
from scrape_exporters.speedtest.runner import CommandRunner

logger = get_logger(__name__)


class OnDemandRefresher:
    """
    Runs source -> decoder -> state update synchronously for one scrape.

    Args:
        runner: Process source adapter
        state: State holder owned by the composition root
        decoder: RawSample -> SpeedtestMeasurement
    """

    def __init__(
        self,
        runner: CommandRunner,
        state: StateHolder[SpeedtestMeasurement],
        decoder: Callable[[RawSample], SpeedtestMeasurement] = decode_speedtest,
    ) -> None:
        self.runner = runner
        self.state = state
        self.decoder = decoder

    def refresh(self) -> Snapshot[SpeedtestMeasurement]:
        """
        Refresh once and return the snapshot produced by this attempt.

        Never raises for source or decode failures; they are logged and
        recorded on the snapshot instead.
        """
        start = time.monotonic()
        try:
            measurement = self.decoder(self.runner.run())
        except ExporterError as e:
            duration = monotonic_duration(start)
            self._log_failure(e)
            return self.state.update(None, error=e, duration_seconds=duration)

        return self.state.update(measurement, duration_seconds=monotonic_duration(start))

    def _log_failure(self, error: ExporterError) -> None:
        extra = {"error_kind": error.kind}
        if isinstance(error, SourceError):
            extra["command"] = " ".join([error.command or "", *error.args_list]).strip()
        logger.warning(f"speedtest scrape failed: {error}", extra=extra)


class SpeedtestCollector(SnapshotCollector):
    """
    Publishes one fresh speedtest run per scrape.

    On failure only ``scrape_success`` (0) and ``scrape_duration_seconds``
    are emitted; stale measurements are not republished as current.
    """

    GAUGES = {
        "download_bandwidth": GaugeSpec(
            "download_bandwidth_bits_per_second",
            "Download bandwidth reported by Ookla speedtest CLI in bits per second.",
        ),
        "upload_bandwidth": GaugeSpec(
            "upload_bandwidth_bits_per_second",
            "Upload bandwidth reported by Ookla speedtest CLI in bits per second.",
        ),
        "download_latency": GaugeSpec(
            "download_latency_seconds",
            "Download latency statistics reported by Ookla speedtest CLI (seconds).",
            ("stat",),
        ),
        "upload_latency": GaugeSpec(
            "upload_latency_seconds",
            "Upload latency statistics reported by Ookla speedtest CLI (seconds).",
            ("stat",),
        ),
        "ping_latency": GaugeSpec(
            "ping_latency_seconds",
            "Ping latency statistics reported by Ookla speedtest CLI (seconds).",
            ("stat",),
        ),
        "ping_jitter": GaugeSpec(
            "ping_jitter_seconds",
            "Ping jitter reported by Ookla speedtest CLI (seconds).",
        ),
        "packet_loss": GaugeSpec(
            "packet_loss_ratio",
            "Packet loss ratio (0-100) reported by Ookla speedtest CLI.",
        ),
        "scrape_duration": GaugeSpec(
            "scrape_duration_seconds",
            "Duration of the Ookla speedtest CLI invocation in seconds.",
        ),
        "scrape_success": GaugeSpec(
            "scrape_success",
            "Whether the latest scrape finished successfully (1) or resulted in an error (0).",
        ),
    }

    def __init__(self, refresher: OnDemandRefresher, namespace: str = "") -> None:
        super().__init__(namespace)
        self.refresher = refresher

    def collect(self) -> Iterable[Metric]:
        with CorrelationContext():
            snapshot = self.refresher.refresh()
        return self.publish(snapshot)

    def publish(self, snapshot: Snapshot[SpeedtestMeasurement]) -> Iterable[Metric]:
        """Build the metric families for one refresh outcome."""
        families = []
        record: Optional[SpeedtestMeasurement] = snapshot.record

        if not snapshot.failed and record is not None:
            families.extend(self._measurement_families(record))

        success = self.family("scrape_success")
        success.add_metric([], 0.0 if snapshot.failed or record is None else 1.0)
        duration = self.family("scrape_duration")
        duration.add_metric([], snapshot.duration_seconds)
        families.extend([success, duration])
        return families

    def _measurement_families(self, m: SpeedtestMeasurement):
        download = self.family("download_bandwidth")
        download.add_metric([], m.download_bandwidth_bps)
        upload = self.family("upload_bandwidth")
        upload.add_metric([], m.upload_bandwidth_bps)

        download_latency = self.family("download_latency")
        for stat, value in m.download_latency.as_labels().items():
            download_latency.add_metric([stat], value)

        upload_latency = self.family("upload_latency")
        for stat, value in m.upload_latency.as_labels().items():
            upload_latency.add_metric([stat], value)

        ping_latency = self.family("ping_latency")
        for stat, value in m.ping.as_labels().items():
            ping_latency.add_metric([stat], value)

        ping_jitter = self.family("ping_jitter")
        ping_jitter.add_metric([], m.ping.jitter)
        packet_loss = self.family("packet_loss")
        packet_loss.add_metric([], m.packet_loss)

        return [
            download, upload, download_latency, upload_latency,
            ping_latency, ping_jitter, packet_loss,
        ]
