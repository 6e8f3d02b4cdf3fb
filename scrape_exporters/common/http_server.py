"""
HTTP server for the scrape endpoint and operator endpoints.
Runs in a separate daemon thread; every request gets its own thread so
concurrent scrapes never queue behind a slow on-demand refresh.

Endpoints:
    GET /metrics  - Exposition of the injected registry, negotiated by
                   prometheus_client (text or OpenMetrics, gzip, name[] filter)
    GET /healthz  - Liveness: fixed 200 "ok" (optional, timetable exporter)
    GET /status   - JSON view of the exporter's snapshot state
"""
import json
import threading
from http.server import ThreadingHTTPServer
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlsplit

from prometheus_client import CollectorRegistry, MetricsHandler

from scrape_exporters.common.exceptions import ConfigurationError
from scrape_exporters.common.logging_config import get_logger

logger = get_logger(__name__)

StatusProvider = Callable[[], Dict[str, Any]]


def parse_listen_address(address: str) -> Tuple[str, int]:
    """
    Split "host:port" or ":port" into a bindable (host, port) pair.

    Raises:
        ConfigurationError: Address has no valid port
    """
    host, sep, port = address.strip().rpartition(":")
    if not sep:
        raise ConfigurationError(f"listen address must be host:port or :port, got {address!r}")
    host = host.strip("[]")
    try:
        port_num = int(port)
    except ValueError:
        raise ConfigurationError(f"invalid port in listen address {address!r}")
    if not 0 <= port_num <= 65535:
        raise ConfigurationError(f"port out of range in listen address {address!r}")
    return host or "0.0.0.0", port_num


class ExporterHTTPHandler(MetricsHandler):
    """
    prometheus_client's MetricsHandler with operator endpoints added.

    /metrics is delegated to MetricsHandler.do_GET, which negotiates the
    exposition format from the Accept headers.
    """

    # Class-level references (set by ExporterServer)
    status_provider: Optional[StatusProvider] = None
    health_path: Optional[str] = None

    def do_GET(self):
        """Handle GET requests for exporter endpoints."""
        path = urlsplit(self.path).path

        if path == "/metrics":
            self._send_metrics()

        elif self.health_path and path == self.health_path:
            self._send(200, b"ok", "text/plain; charset=utf-8")

        elif path == "/status":
            data = self.status_provider() if self.status_provider else {}
            self._send_json(200, data)

        else:
            self._send_json(404, {"error": "Not found"})

    def _send_metrics(self):
        # Output is fully rendered before any header is written
        try:
            super().do_GET()
        except Exception as e:
            logger.exception(f"Failed to render metrics: {e}")
            self._send(500, b"error collecting metrics\n", "text/plain; charset=utf-8")

    def _send_json(self, status_code: int, data: Dict[str, Any]):
        body = json.dumps(data, indent=2).encode("utf-8")
        self._send(status_code, body, "application/json")

    def _send(self, status_code: int, body: bytes, content_type: str):
        self.send_response(status_code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        """Suppress default access logging to avoid noise."""
        pass


class ExporterServer:
    """
    Threaded HTTP server exposing one exporter's registry.

    Usage:
        server = ExporterServer(registry, ":9100", health_path="/healthz")
        server.start()
        # ... wait for shutdown ...
        server.stop()
    """

    def __init__(
        self,
        registry: CollectorRegistry,
        listen_address: str,
        health_path: Optional[str] = None,
        status_provider: Optional[StatusProvider] = None
    ):
        """
        Initialize exporter server.

        Args:
            registry: Registry rendered on /metrics
            listen_address: "host:port" or ":port"
            health_path: Liveness path, or None to disable
            status_provider: Callable returning the /status payload
        """
        self.registry = registry
        self.listen_address = listen_address
        self.host, self.port = parse_listen_address(listen_address)
        self.health_path = health_path
        self.status_provider = status_provider
        self._server: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """
        Bind and serve in a daemon thread.

        Raises:
            OSError: Listen address cannot be bound
        """
        handler = type(
            'ExporterHandler',
            (ExporterHTTPHandler,),
            {
                'registry': self.registry,
                'status_provider': staticmethod(self.status_provider) if self.status_provider else None,
                'health_path': self.health_path,
            }
        )

        try:
            self._server = ThreadingHTTPServer((self.host, self.port), handler)
        except OSError as e:
            logger.error(f"Failed to start HTTP server on {self.listen_address}: {e}")
            raise
        self._server.daemon_threads = True
        # Port 0 binds an ephemeral port
        self.port = self._server.server_address[1]

        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="exporter-http",
            daemon=True
        )
        self._thread.start()
        endpoints = ["/metrics", "/status"] + ([self.health_path] if self.health_path else [])
        logger.info(f"HTTP server started on {self.host}:{self.port} ({', '.join(endpoints)})")

    def stop(self) -> None:
        """Stop serving and release the socket."""
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
            logger.info("HTTP server stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
