"""Metrics and health check HTTP server.

Endpoints:
    GET /metrics  Prometheus text exposition
    GET /health   liveness, always ``OK``
    GET /ready    JSON status of the backup loop, 503 until the first cycle ran
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from prometheus_client import CONTENT_TYPE_LATEST

from redis_vault.metrics import PrometheusMetrics

logger = logging.getLogger(__name__)

StatusProvider = Callable[[], dict[str, Any]]


class MetricsServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], metrics: PrometheusMetrics, status: StatusProvider | None = None):
        super().__init__(address, MetricsHandler)
        self.metrics = metrics
        self.status = status


class MetricsHandler(BaseHTTPRequestHandler):
    """HTTP handler for metrics and health endpoints."""

    server: MetricsServer

    def log_message(self, format, *args):
        logger.debug(f"{self.address_string()} {format % args}")

    def do_GET(self):
        path = self.path.split("?", 1)[0]
        if path == "/metrics":
            self._respond(200, self.server.metrics.render(), CONTENT_TYPE_LATEST)
        elif path == "/health":
            self._respond(200, b"OK", "text/plain; charset=utf-8")
        elif path == "/ready":
            status = self.server.status() if self.server.status else {"ready": True}
            code = 200 if status.get("ready") else 503
            self._respond(code, json.dumps(status).encode(), "application/json")
        else:
            self._respond(404, b"Not Found", "text/plain; charset=utf-8")

    def _respond(self, code: int, body: bytes, content_type: str):
        self.send_response(code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


def start_metrics_server(
    metrics: PrometheusMetrics,
    address: str = "0.0.0.0",
    port: int = 9090,
    status: StatusProvider | None = None,
) -> MetricsServer | None:
    """Start the metrics server in a daemon thread.

    Returns None if the socket cannot be bound; the backup loop keeps running
    without an endpoint in that case.
    """
    try:
        server = MetricsServer((address, port), metrics, status)
    except OSError as e:
        logger.error(f"Failed to bind metrics server to {address}:{port}: {e}")
        return None

    thread = threading.Thread(target=server.serve_forever, name="metrics-server", daemon=True)
    thread.start()
    host, bound_port = server.server_address[:2]
    logger.info(f"Metrics server listening on http://{host}:{bound_port}/metrics")
    return server
