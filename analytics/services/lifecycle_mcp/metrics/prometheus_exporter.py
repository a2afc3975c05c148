"""Prometheus Metrics Exporter

This module exports dashboard-core metrics to Prometheus for monitoring and alerting.

Metrics exported:
- metric_fetch_duration_seconds: Histogram of metric fetch times
- metric_fetch_total: Counter of metric fetches by outcome
- metric_cache_lookups_total: Counter of result-cache hits and misses
- stale_results_discarded_total: Counter of fetches dropped for superseded keys
- inflight_fetches: Gauge of fetches currently running
- cohort_dispatch_total: Counter of cohort dispatches by type and outcome
- circuit_breaker_state: Gauge of circuit breaker states

Usage:
    # Start Prometheus metrics server on port 8000
    >>> start_metrics_server(port=8000)

    # Metrics available at http://localhost:8000/metrics
"""

from threading import Lock

import structlog
from prometheus_client import Counter, Gauge, Histogram, generate_latest, start_http_server

logger = structlog.get_logger(__name__)

# Metrics definitions
metric_fetch_duration = Histogram(
    "metric_fetch_duration_seconds",
    "Lifecycle metric fetch duration in seconds",
    ["metric"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

metric_fetch_total = Counter(
    "metric_fetch_total",
    "Total lifecycle metric fetches",
    ["metric", "status"],  # status: success or error
)

metric_cache_lookups_total = Counter(
    "metric_cache_lookups_total",
    "Result cache lookups",
    ["result"],  # result: hit or miss
)

stale_results_discarded_total = Counter(
    "stale_results_discarded_total",
    "Fetch results dropped because their query key was superseded",
    ["metric"],
)

inflight_fetches = Gauge("inflight_fetches", "Number of metric fetches in flight")

cohort_dispatch_total = Counter(
    "cohort_dispatch_total",
    "Cohort dispatches to the activation sink",
    ["cohort_type", "status"],  # status: ok or error kind
)

# Circuit breaker state gauge
circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open, 2=half_open)",
    ["breaker_name"],
)

# Global state
_metrics_server_started = False
_metrics_lock = Lock()


def start_metrics_server(port: int = 8000):
    """Start Prometheus metrics HTTP server.

    Args:
        port: Port to expose metrics on (default: 8000)

    Raises:
        RuntimeError: If metrics server is already running
    """
    global _metrics_server_started

    with _metrics_lock:
        if _metrics_server_started:
            raise RuntimeError("Metrics server is already running")

        try:
            start_http_server(port)
            _metrics_server_started = True
            logger.info("prometheus_metrics_server_started", port=port)
        except Exception as e:
            logger.error(
                "prometheus_metrics_server_failed", port=port, error=str(e), error_type=type(e).__name__
            )
            raise


def get_metrics_text() -> bytes:
    """Get current Prometheus metrics in text format."""
    return generate_latest()


def record_metric_fetch(metric: str, duration_seconds: float, success: bool):
    """Record a completed metric fetch.

    Example:
        >>> record_metric_fetch('sankey', 0.42, True)
    """
    status = "success" if success else "error"

    metric_fetch_duration.labels(metric=metric).observe(duration_seconds)
    metric_fetch_total.labels(metric=metric, status=status).inc()


def record_cache_lookup(hit: bool):
    metric_cache_lookups_total.labels(result="hit" if hit else "miss").inc()


def record_stale_result(metric: str):
    stale_results_discarded_total.labels(metric=metric).inc()


def increment_inflight_fetches():
    inflight_fetches.inc()


def decrement_inflight_fetches():
    inflight_fetches.dec()


def record_cohort_dispatch(cohort_type: str, status: str):
    """Record a cohort dispatch outcome ('ok' or an error kind)."""
    cohort_dispatch_total.labels(cohort_type=cohort_type, status=status).inc()


def update_circuit_breaker_state(breaker_name: str, state: str):
    """Update circuit breaker state metric.

    Args:
        breaker_name: Name of the circuit breaker
        state: State name ('closed', 'open', 'half-open')
    """
    normalized = state.lower().replace("-", "_")
    state_value = {"closed": 0, "open": 1, "half_open": 2}.get(normalized, 0)

    circuit_breaker_state.labels(breaker_name=breaker_name).set(state_value)
