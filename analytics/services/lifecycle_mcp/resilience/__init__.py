"""Resilience patterns for the Lifecycle Attribution MCP server

This package provides circuit breakers that fail fast when the lifecycle
analytics API or the cohort activation sink is down. Failed fetches and
dispatches are never retried automatically.
"""

from analytics.services.lifecycle_mcp.resilience.circuit_breakers import (
    ACTION_SINK_BREAKER,
    METRIC_API_BREAKER,
    get_circuit_breaker,
    get_circuit_breaker_status,
    reset_all_circuit_breakers,
)

__all__ = [
    "ACTION_SINK_BREAKER",
    "METRIC_API_BREAKER",
    "get_circuit_breaker",
    "get_circuit_breaker_status",
    "reset_all_circuit_breakers",
]
