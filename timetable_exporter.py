#!/usr/bin/env python3
"""
Timetable Exporter - YAML event schedule to Prometheus
Watches a schedule file, reloads it when its modification time changes and
publishes start/end/duration/active gauges per event. /healthz answers
independently of whether a schedule is loaded.
"""
import sys
import argparse
from typing import Any, Dict, List, Optional

from prometheus_client import CollectorRegistry

from config.settings import load_settings
from scrape_exporters.common.logging_config import configure_logging, setup_logging
from scrape_exporters.common.correlation import set_component
from scrape_exporters.common.exceptions import ConfigurationError
from scrape_exporters.common.http_server import ExporterServer
from scrape_exporters.common.shutdown import ShutdownManager
from scrape_exporters.common.state import StateHolder
from scrape_exporters.timetable import (
    EventCollector,
    Schedule,
    ScheduleFile,
    ScheduleWatcher,
    schedule_state,
)

logger = setup_logging(__name__)

set_component("timetable")


class TimetableExporter:
    """
    Composition root for the timetable exporter.
    Owns the state holder, the watcher thread, the registry and the HTTP server.
    """

    def __init__(
        self,
        events_path: str = "events.yaml",
        listen_address: str = ":9100",
        reload_interval: float = 10.0,
        namespace: str = "",
    ):
        self.state: StateHolder[Schedule] = StateHolder()
        self.source = ScheduleFile(events_path)
        self.watcher = ScheduleWatcher(self.source, self.state, interval=reload_interval)
        self.collector = EventCollector(self.state, namespace=namespace)

        self.registry = CollectorRegistry()
        self.collector.register(self.registry)

        self.server = ExporterServer(
            self.registry,
            listen_address,
            health_path="/healthz",
            status_provider=self.status,
        )

    def status(self) -> Dict[str, Any]:
        """Payload for GET /status."""
        snapshot = self.state.read()
        data = {
            "component": "timetable",
            "events_path": str(self.source.path),
            "schedule_state": schedule_state(snapshot).value,
            "events": len(snapshot.record) if snapshot.record is not None else 0,
        }
        data.update(snapshot.to_dict())
        return data

    def start(self) -> None:
        """Initial load (best effort), then the watcher, then the listener."""
        self.watcher.load_initial()
        self.watcher.start()
        self.server.start()

    def stop(self) -> None:
        self.server.stop()
        self.watcher.stop()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    try:
        settings = load_settings()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    configure_logging(settings.logging.level, settings.logging.format)
    cfg = settings.timetable

    parser = argparse.ArgumentParser(description="Timetable Exporter - YAML event schedule to Prometheus")
    parser.add_argument(
        "--listen",
        default=cfg.listen_address,
        help=f"listen address for metrics and health (default: {cfg.listen_address})"
    )
    parser.add_argument(
        "--events",
        default=cfg.events_path,
        help=f"path to events YAML (default: {cfg.events_path})"
    )
    parser.add_argument(
        "--reload-interval",
        type=float,
        default=cfg.reload_interval,
        help=f"polling interval in seconds for events file reload (default: {cfg.reload_interval:g})"
    )
    args = parser.parse_args(argv)

    try:
        exporter = TimetableExporter(
            events_path=args.events,
            listen_address=args.listen,
            reload_interval=args.reload_interval,
            namespace=cfg.metric_namespace,
        )
        exporter.start()
    except (ConfigurationError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    except OSError as e:
        logger.error(f"server stopped: {e}")
        exporter.watcher.stop()
        return 1

    shutdown = ShutdownManager()
    shutdown.register(exporter.server.stop, priority=0, name="http-server")
    shutdown.register(exporter.watcher.stop, priority=10, name="schedule-watcher")
    shutdown.install_signal_handlers()

    logger.info(
        f"starting exporter on {args.listen}, watching {args.events} "
        f"(reload interval={args.reload_interval:g}s)"
    )
    shutdown.wait_for_shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
