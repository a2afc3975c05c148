"""Execution Metrics MCP Tool

This tool provides performance statistics for metric fetches.
It tracks:
1. Fetch counts and success rates per metric
2. Average, minimum and maximum fetch durations per metric
3. Failure counts by error kind (http, network, timeout, ...)
4. Overall fetch performance

Usage:
    Call get_execution_metrics() to retrieve current performance statistics
    Call reset_execution_metrics() to clear metrics (useful for testing)
"""

import time
from collections import defaultdict, deque
from datetime import datetime
from threading import Lock
from typing import Any

import structlog
from fastmcp import Context
from pydantic import BaseModel, Field

from analytics.services.lifecycle_mcp.instance import mcp

logger = structlog.get_logger(__name__)


class FetchMetrics(BaseModel):
    """Fetch statistics for a single metric."""

    total_fetches: int = Field(description="Total number of completed fetches")
    successful_fetches: int = Field(description="Number of successful fetches")
    failed_fetches: int = Field(description="Number of failed fetches")
    avg_duration_ms: float = Field(description="Average fetch duration in ms")
    min_duration_ms: float | None = Field(
        default=None, description="Minimum fetch duration in ms"
    )
    max_duration_ms: float | None = Field(
        default=None, description="Maximum fetch duration in ms"
    )
    success_rate_pct: float = Field(description="Success rate percentage (0-100)")
    error_kinds: dict[str, int] = Field(
        default_factory=dict, description="Count of failures by error kind"
    )


class ExecutionMetricsResponse(BaseModel):
    """Execution metrics response with fetch performance statistics."""

    timestamp: str = Field(description="ISO timestamp of metrics snapshot")
    total_fetches: int = Field(description="Total metric fetches completed")
    metric_stats: dict[str, FetchMetrics] = Field(
        description="Per-metric fetch statistics"
    )
    overall_avg_duration_ms: float = Field(
        description="Average duration across all fetches"
    )
    overall_success_rate_pct: float = Field(
        description="Overall fetch success rate percentage"
    )
    uptime_seconds: float = Field(description="Metrics collection uptime in seconds")


class MetricsCollector:
    """Thread-safe in-memory collector of metric fetch outcomes."""

    def __init__(self):
        self._lock = Lock()
        self._start_time = time.time()
        # Bounded: keep the last 10,000 fetch durations overall
        self._all_durations: deque = deque(maxlen=10000)

        # Per-metric data; durations are bounded deques created on first use
        self._metric_data: dict[str, dict[str, Any]] = defaultdict(
            lambda: {
                "fetches": 0,
                "successes": 0,
                "failures": 0,
                "durations": deque(maxlen=1000),
                "error_kinds": defaultdict(int),
            }
        )

    def record_fetch(
        self,
        metric: str,
        success: bool,
        duration_ms: float,
        error_kind: str | None = None,
    ):
        """Record a completed metric fetch.

        Args:
            metric: Registry name of the metric (e.g., 'sankey', 'churnRisk')
            success: Whether the fetch succeeded
            duration_ms: Fetch duration in milliseconds
            error_kind: FetchError kind if failed (e.g., 'http', 'timeout')
        """
        with self._lock:
            data = self._metric_data[metric]
            data["fetches"] += 1

            if success:
                data["successes"] += 1
            else:
                data["failures"] += 1
                if error_kind:
                    data["error_kinds"][error_kind] += 1

            data["durations"].append(duration_ms)
            self._all_durations.append(duration_ms)

    def get_metrics(self) -> dict[str, Any]:
        """Get current metrics snapshot."""
        with self._lock:
            metric_stats = {}

            for metric, data in self._metric_data.items():
                durations = data["durations"]
                total = data["fetches"]

                metric_stats[metric] = FetchMetrics(
                    total_fetches=total,
                    successful_fetches=data["successes"],
                    failed_fetches=data["failures"],
                    avg_duration_ms=sum(durations) / len(durations) if durations else 0.0,
                    min_duration_ms=min(durations) if durations else None,
                    max_duration_ms=max(durations) if durations else None,
                    success_rate_pct=(data["successes"] / total * 100) if total > 0 else 0.0,
                    error_kinds=dict(data["error_kinds"]),
                )

            total_fetches = sum(d["fetches"] for d in self._metric_data.values())
            total_successes = sum(d["successes"] for d in self._metric_data.values())
            all_durations = self._all_durations

            return {
                "timestamp": datetime.now().isoformat(),
                "total_fetches": total_fetches,
                "metric_stats": metric_stats,
                "overall_avg_duration_ms": (
                    sum(all_durations) / len(all_durations) if all_durations else 0.0
                ),
                # No data means 0% success rate (not 100%)
                "overall_success_rate_pct": (
                    total_successes / total_fetches * 100 if total_fetches > 0 else 0.0
                ),
                "uptime_seconds": time.time() - self._start_time,
            }

    def reset(self):
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._start_time = time.time()
            self._all_durations.clear()
            self._metric_data.clear()


# Global metrics collector instance
_metrics_collector = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    return _metrics_collector


async def _get_execution_metrics_impl(ctx: Context) -> ExecutionMetricsResponse:
    logger.info("retrieving_execution_metrics")

    metrics_data = _metrics_collector.get_metrics()

    logger.info(
        "execution_metrics_retrieved",
        total_fetches=metrics_data["total_fetches"],
        metric_count=len(metrics_data["metric_stats"]),
        overall_success_rate=metrics_data["overall_success_rate_pct"],
    )

    return ExecutionMetricsResponse(**metrics_data)


async def _reset_execution_metrics_impl(ctx: Context) -> dict[str, str]:
    logger.info("resetting_execution_metrics")

    _metrics_collector.reset()
    timestamp = datetime.now().isoformat()

    logger.info("execution_metrics_reset", timestamp=timestamp)

    return {
        "status": "metrics reset successfully",
        "timestamp": timestamp,
        "message": "All fetch metrics have been cleared and restarted from zero",
    }


@mcp.tool()
async def get_execution_metrics(ctx: Context) -> ExecutionMetricsResponse:
    """
    Get fetch performance statistics for every dashboard metric.

    Includes per-metric fetch counts, success rates, timings and the
    distribution of failure kinds, plus overall figures.

    Returns:
        ExecutionMetricsResponse with detailed fetch statistics

    Example:
        >>> result = await get_execution_metrics()
        >>> print(result.metric_stats['sankey'].avg_duration_ms)  # 512.3
    """
    return await _get_execution_metrics_impl(ctx)


@mcp.tool()
async def reset_execution_metrics(ctx: Context) -> dict[str, str]:
    """
    Reset all execution metrics to zero.

    Returns:
        Confirmation message with reset timestamp
    """
    return await _reset_execution_metrics_impl(ctx)
