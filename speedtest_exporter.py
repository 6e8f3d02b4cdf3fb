#!/usr/bin/env python3
"""
Speedtest Exporter - Ookla speedtest CLI to Prometheus
Runs the speedtest CLI on every scrape of /metrics and republishes the
result as gauges. A failed run still answers the scrape, reporting
scrape_success=0 and the time spent.
"""
import sys
import argparse
from typing import Any, Dict, List, Optional

from prometheus_client import CollectorRegistry

from config.settings import load_settings, parse_duration
from scrape_exporters.common.logging_config import configure_logging, setup_logging
from scrape_exporters.common.correlation import set_component
from scrape_exporters.common.exceptions import ConfigurationError
from scrape_exporters.common.http_server import ExporterServer
from scrape_exporters.common.shutdown import ShutdownManager
from scrape_exporters.common.state import StateHolder
from scrape_exporters.speedtest import (
    CommandRunner,
    OnDemandRefresher,
    SpeedtestCollector,
    SpeedtestMeasurement,
)

logger = setup_logging(__name__)

set_component("speedtest")


class SpeedtestExporter:
    """
    Composition root for the speedtest exporter.
    Owns the state holder, the registry and the HTTP server.
    """

    def __init__(
        self,
        command: str = "speedtest",
        extra_args: Optional[List[str]] = None,
        timeout: float = 90.0,
        listen_address: str = ":9801",
        namespace: str = "",
    ):
        self.state: StateHolder[SpeedtestMeasurement] = StateHolder()
        self.runner = CommandRunner(command, extra_args=extra_args, timeout=timeout)
        self.refresher = OnDemandRefresher(self.runner, self.state)
        self.collector = SpeedtestCollector(self.refresher, namespace=namespace)

        self.registry = CollectorRegistry()
        self.collector.register(self.registry)

        self.server = ExporterServer(
            self.registry,
            listen_address,
            status_provider=self.status,
        )

        logger.info(
            f"SpeedtestExporter initialized: command={self.runner.command_line}, "
            f"timeout={timeout:g}s, listen={listen_address}"
        )

    def status(self) -> Dict[str, Any]:
        """Payload for GET /status."""
        data = {"component": "speedtest", "command": self.runner.command_line}
        data.update(self.state.read().to_dict())
        return data

    def start(self) -> None:
        self.server.start()

    def stop(self) -> None:
        self.server.stop()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    try:
        settings = load_settings()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    configure_logging(settings.logging.level, settings.logging.format)

    parser = argparse.ArgumentParser(description="Speedtest Exporter - Ookla speedtest CLI to Prometheus")
    parser.add_argument(
        "--listen",
        default=settings.listen.listen_address,
        help=f"Listen address for /metrics (default: LISTEN_ADDRESS or {settings.listen.listen_address})"
    )
    parser.add_argument(
        "--command",
        default=settings.speedtest.command,
        help=f"Speedtest executable (default: SPEEDTEST_COMMAND or {settings.speedtest.command})"
    )
    parser.add_argument(
        "--timeout",
        type=parse_duration,
        default=settings.speedtest.timeout,
        help=f"Invocation timeout, e.g. 90s or 2m (default: SPEEDTEST_TIMEOUT or {settings.speedtest.timeout:g}s)"
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override LOG_LEVEL"
    )
    args = parser.parse_args(argv)

    if args.log_level:
        configure_logging(args.log_level, settings.logging.format)

    try:
        exporter = SpeedtestExporter(
            command=args.command,
            extra_args=settings.speedtest.extra_args,
            timeout=args.timeout,
            listen_address=args.listen,
            namespace=settings.speedtest.metric_namespace,
        )
        exporter.start()
    except (ConfigurationError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    except OSError as e:
        logger.error(f"failed to start HTTP server: {e}")
        return 1

    shutdown = ShutdownManager()
    shutdown.register(exporter.stop, priority=0, name="http-server")
    shutdown.install_signal_handlers()

    logger.info(f"starting speedtest exporter on {args.listen}")
    shutdown.wait_for_shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
