"""Metrics package for the Lifecycle Attribution MCP server

This package provides Prometheus metrics for metric fetches, the result
cache, stale-result suppression and cohort dispatch.
"""

from analytics.services.lifecycle_mcp.metrics.prometheus_exporter import (
    decrement_inflight_fetches,
    get_metrics_text,
    increment_inflight_fetches,
    record_cache_lookup,
    record_cohort_dispatch,
    record_metric_fetch,
    record_stale_result,
    start_metrics_server,
    update_circuit_breaker_state,
)

__all__ = [
    "start_metrics_server",
    "get_metrics_text",
    "record_metric_fetch",
    "record_cache_lookup",
    "record_stale_result",
    "increment_inflight_fetches",
    "decrement_inflight_fetches",
    "record_cohort_dispatch",
    "update_circuit_breaker_state",
]
