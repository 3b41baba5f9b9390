"""Prometheus metrics for the relay.

Tracks open connections, request outcomes and transcode timings.
"""

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# Create a custom registry for our metrics
REGISTRY = CollectorRegistry()


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "relay_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# Connection Metrics
# ============================================
CONNECTIONS_ACTIVE = Gauge(
    "relay_connections_active",
    "Number of WebSocket connections currently open",
    registry=REGISTRY,
)


# ============================================
# Request Metrics
# ============================================
REQUESTS_TOTAL = Counter(
    "relay_requests_total",
    "Upload requests handled, by outcome",
    ["outcome"],
    registry=REGISTRY,
)

TRANSCODE_DURATION_SECONDS = Histogram(
    "relay_transcode_duration_seconds",
    "Time spent waiting for the transcoder",
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0],
    registry=REGISTRY,
)

TRANSCODE_FAILURES_TOTAL = Counter(
    "relay_transcode_failures_total",
    "Failed transcodes, by reason",
    ["reason"],
    registry=REGISTRY,
)


def record_request(outcome: str) -> None:
    """Count a finished request cycle.

    Args:
        outcome: Short outcome label (delivered, decode_error, ...)
    """
    REQUESTS_TOTAL.labels(outcome=outcome).inc()


def get_metrics() -> bytes:
    """Generate Prometheus metrics output.

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get Prometheus content type."""
    return CONTENT_TYPE_LATEST


def set_app_info(version: str, environment: str) -> None:
    """Set application info metric.

    Args:
        version: Application version
        environment: Deployment environment
    """
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })
