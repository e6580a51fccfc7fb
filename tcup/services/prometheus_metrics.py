"""
Prometheus metrics for the tcup relay
"""

import logging
import os

from prometheus_client import Counter, Gauge, Histogram, generate_latest, start_http_server, CONTENT_TYPE_LATEST

logger = logging.getLogger("tcup.metrics")

# Build info
BUILD_INFO = Gauge(
    'tcup_build_info',
    'Build information',
    ['version']
)

# Forwarded traffic
FORWARDED_REQUESTS_TOTAL = Counter(
    'tcup_forwarded_requests_total',
    'Total number of requests whose body was forwarded'
)

FORWARDED_BYTES_TOTAL = Counter(
    'tcup_forwarded_bytes_total',
    'Total number of payload bytes handed to the UDP socket'
)

DATAGRAMS_SENT_TOTAL = Counter(
    'tcup_datagrams_sent_total',
    'Total number of UDP datagrams written',
    ['mode']
)

# Failures
REJECTED_REQUESTS_TOTAL = Counter(
    'tcup_rejected_requests_total',
    'Total number of requests rejected before forwarding',
    ['reason']
)

FORWARD_ERRORS_TOTAL = Counter(
    'tcup_forward_errors_total',
    'Total number of socket errors while forwarding'
)

# Destination socket state
DESTINATION_CONNECTED = Gauge(
    'tcup_destination_connected',
    'UDP destination socket status (1=open, 0=closed)'
)

# Latency
REQUEST_LATENCY = Histogram(
    'tcup_request_latency_seconds',
    'Time from request arrival to successful forward in seconds',
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)


class PrometheusMetrics:
    """Service for managing Prometheus metrics."""

    def __init__(self):
        self._setup_build_info()
        self._server_port = None

    def _setup_build_info(self):
        """Set up build information gauge."""
        from .. import __version__
        BUILD_INFO.labels(version=os.getenv("TCUP_VERSION", __version__)).set(1)

    def record_forward(self, byte_count: int, latency_seconds: float = None):
        """Record one successfully forwarded request."""
        FORWARDED_REQUESTS_TOTAL.inc()
        FORWARDED_BYTES_TOTAL.inc(byte_count)
        if latency_seconds is not None:
            REQUEST_LATENCY.observe(latency_seconds)

    def increment_datagrams(self, mode: str, count: int = 1):
        """Increment datagrams sent counter for a forward mode."""
        DATAGRAMS_SENT_TOTAL.labels(mode=mode).inc(count)

    def increment_rejected(self, reason: str, count: int = 1):
        """Increment rejected request counter with reason."""
        REJECTED_REQUESTS_TOTAL.labels(reason=reason).inc(count)

    def increment_forward_errors(self, count: int = 1):
        FORWARD_ERRORS_TOTAL.inc(count)

    def set_destination_connected(self, connected: bool):
        DESTINATION_CONNECTED.set(1 if connected else 0)

    def start_exporter(self, port: int, addr: str = "0.0.0.0") -> bool:
        """Serve /metrics on a separate plain HTTP port. Returns False if already running."""
        if self._server_port is not None:
            return False
        start_http_server(port, addr=addr)
        self._server_port = port
        logger.info("Prometheus exporter listening on %s:%d", addr, port)
        return True

    def get_metrics(self) -> bytes:
        """Get metrics in Prometheus format."""
        return generate_latest()

    def get_content_type(self) -> str:
        """Get Prometheus content type."""
        return CONTENT_TYPE_LATEST


# Global instance
prometheus_metrics = PrometheusMetrics()
