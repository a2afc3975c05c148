"""Health Check MCP Tool

This tool reports the health of the dashboard server and its dependencies.

It checks:
1. MCP server status
2. Dashboard session (started, metric source mode)
3. Metric slots (how many are loading or failed)
4. Circuit breaker states for the lifecycle API and the action sink
5. Result cache statistics

A failed metric or an open circuit makes the server 'degraded'; a missing
session makes it 'unhealthy'.
"""

import time
from datetime import datetime
from typing import Any

import structlog
from fastmcp import Context
from pydantic import BaseModel, Field

from analytics.services.lifecycle_mcp.instance import mcp
from analytics.services.lifecycle_mcp.resilience import get_circuit_breaker_status
from analytics.services.lifecycle_mcp.session import get_session

logger = structlog.get_logger(__name__)


class HealthCheckResponse(BaseModel):
    """Health check response with system status."""

    status: str = Field(
        description="Overall health status: 'healthy', 'degraded', or 'unhealthy'"
    )
    timestamp: str = Field(description="ISO timestamp of health check")
    checks: dict[str, str] = Field(description="Individual component health checks")
    uptime_seconds: float | None = Field(
        default=None, description="Server uptime in seconds"
    )
    metric_status: dict[str, str] = Field(
        default_factory=dict, description="Status of every metric slot"
    )
    circuit_breakers: dict[str, dict[str, Any]] = Field(default_factory=dict)
    cache_stats: dict[str, Any] | None = None


# Track server start time
_SERVER_START_TIME = time.time()


async def _health_check_impl(ctx: Context) -> HealthCheckResponse:
    logger.info("health_check_starting")

    checks: dict[str, str] = {"mcp_server": "healthy"}
    status = "healthy"
    metric_status: dict[str, str] = {}
    cache_stats = None

    # Dashboard session
    try:
        session = get_session()
    except RuntimeError as e:
        session = None
        checks["dashboard_session"] = f"unhealthy: {e}"
        status = "unhealthy"
        logger.error("dashboard_session_check_failed", error=str(e))
    else:
        mode = "synthetic" if session.settings.uses_synthetic_data else "http"
        checks["dashboard_session"] = f"healthy ({mode} metric sources)"

    # Metric slots
    if session is not None:
        results = session.orchestrator.results
        metric_status = {name: r.status.value for name, r in results.items()}
        failed = [name for name, r in results.items() if r.is_error]
        loading = [name for name, r in results.items() if r.is_loading]
        if failed:
            checks["metrics"] = f"degraded: {len(failed)} failed ({', '.join(failed)})"
            status = "degraded"
        else:
            checks["metrics"] = f"healthy ({len(loading)} loading)"
        cache_stats = session.orchestrator.cache.get_stats()

    # Circuit breakers
    breakers = get_circuit_breaker_status()
    open_breakers = [name for name, b in breakers.items() if b["state"] != "closed"]
    if open_breakers:
        checks["circuit_breakers"] = f"degraded: not closed ({', '.join(open_breakers)})"
        if status == "healthy":
            status = "degraded"
    else:
        checks["circuit_breakers"] = f"healthy ({len(breakers)} closed)"

    uptime_seconds = time.time() - _SERVER_START_TIME

    logger.info(
        "health_check_complete",
        status=status,
        checks=checks,
        uptime_seconds=uptime_seconds,
    )

    return HealthCheckResponse(
        status=status,
        timestamp=datetime.now().isoformat(),
        checks=checks,
        uptime_seconds=uptime_seconds,
        metric_status=metric_status,
        circuit_breakers=breakers,
        cache_stats=cache_stats,
    )


@mcp.tool()
async def health_check(ctx: Context) -> HealthCheckResponse:
    """
    Check health of the dashboard server and its dependencies.

    Returns:
        HealthCheckResponse with overall status, component checks, per-metric
        slot status, circuit breaker states and cache statistics

    Example:
        >>> result = await health_check()
        >>> print(result.status)  # 'healthy'
    """
    return await _health_check_impl(ctx)
