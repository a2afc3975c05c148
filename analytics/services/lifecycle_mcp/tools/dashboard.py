"""Dashboard Data MCP Tools

Read the per-metric results bound to the current filters and trigger
manual re-fetches. Failed metrics are never retried automatically:
refresh_metrics is the retry.
"""

from typing import Any

import structlog
from fastmcp import Context
from pydantic import BaseModel, Field

from analytics.services.lifecycle_mcp.instance import mcp
from analytics.services.lifecycle_mcp.session import DashboardSession, get_session

logger = structlog.get_logger(__name__)


class DashboardDataRequest(BaseModel):
    """Request for dashboard metric results."""

    metrics: list[str] | None = Field(
        default=None, description="Metric names to return (default: all)"
    )
    wait: bool = Field(
        default=True, description="Wait for in-flight fetches before answering"
    )
    include_data: bool = Field(
        default=True, description="Include dataset records (False returns record counts)"
    )


class RefreshMetricsRequest(BaseModel):
    metrics: list[str] | None = Field(
        default=None, description="Metric names to re-fetch (default: all)"
    )
    wait: bool = Field(default=True, description="Wait for the re-fetch to finish")


class DashboardDataResponse(BaseModel):
    """Metric results for the current filter context."""

    query_key: str
    filters: dict[str, Any]
    is_loading: bool
    is_error: bool
    results: dict[str, dict[str, Any]]
    failed_metrics: list[str]


def _validate_metrics(session: DashboardSession, metrics: list[str] | None) -> list[str]:
    names = session.registry.names()
    if metrics is None:
        return names
    unknown = [m for m in metrics if m not in session.registry]
    if unknown:
        raise ValueError(f"Unknown metrics {unknown}. Available: {names}")
    return list(metrics)


def _dashboard_response(
    session: DashboardSession, metrics: list[str], include_data: bool
) -> DashboardDataResponse:
    orchestrator = session.orchestrator
    results = orchestrator.results
    return DashboardDataResponse(
        query_key=session.filters.query_key.digest,
        filters=session.filters.snapshot().as_dict(),
        is_loading=orchestrator.is_loading,
        is_error=orchestrator.is_error,
        results={m: results[m].as_dict(include_data=include_data) for m in metrics},
        failed_metrics=[m for m in metrics if results[m].is_error],
    )


async def _get_dashboard_data_impl(
    request: DashboardDataRequest, ctx: Context
) -> DashboardDataResponse:
    session = get_session()
    metrics = _validate_metrics(session, request.metrics)

    if request.wait and session.orchestrator.is_loading:
        await ctx.report_progress(0.1, "Waiting for metric fetches...")
        await session.orchestrator.settle()
        await ctx.report_progress(1.0, "Metrics resolved")

    response = _dashboard_response(session, metrics, request.include_data)
    logger.info(
        "dashboard_data_served",
        query_key=session.filters.query_key.short,
        metrics=len(metrics),
        is_loading=response.is_loading,
        failed_metrics=response.failed_metrics,
    )
    return response


async def _refresh_metrics_impl(
    request: RefreshMetricsRequest, ctx: Context
) -> DashboardDataResponse:
    session = get_session()
    metrics = _validate_metrics(session, request.metrics)

    session.orchestrator.refresh(metrics)
    await ctx.info(f"Refreshing {len(metrics)} metrics")

    if request.wait:
        await session.orchestrator.settle()

    return _dashboard_response(session, metrics, include_data=True)


@mcp.tool()
async def get_dashboard_data(
    request: DashboardDataRequest, ctx: Context
) -> DashboardDataResponse:
    """
    Get every metric dataset for the current filters.

    Each result carries its status (idle, loading, success, error), the
    query key it belongs to, the data and, for failures, the error kind,
    message, HTTP status and body. Results for superseded filters are never
    returned.
    """
    return await _get_dashboard_data_impl(request, ctx)


@mcp.tool()
async def refresh_metrics(
    request: RefreshMetricsRequest, ctx: Context
) -> DashboardDataResponse:
    """Drop cached results and fetch the given metrics (default: all) again."""
    return await _refresh_metrics_impl(request, ctx)
