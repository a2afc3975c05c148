"""Filter MCP Tools

Expose the dashboard's shared filter context. Every mutating tool
recomputes the query key and reconciles all metric slots before returning;
call get_dashboard_data to read the resulting datasets.

Invalid input (reversed date range, unknown channel or segment) raises
ValueError and leaves the filters unchanged.
"""

from datetime import date

import structlog
from fastmcp import Context
from pydantic import BaseModel, Field

from analytics.services.lifecycle_mcp.instance import mcp
from analytics.services.lifecycle_mcp.session import DashboardSession, get_session

logger = structlog.get_logger(__name__)


class FilterStateResponse(BaseModel):
    """Current filter context and aggregate loading status."""

    start_date: date
    end_date: date
    selected_channels: list[str]
    selected_segment: str
    has_active_filters: bool
    query_key: str = Field(description="SHA-256 digest of the canonical filter content")
    available_channels: list[str]
    available_segments: list[str]
    is_loading: bool
    is_error: bool


class UpdateDateRangeRequest(BaseModel):
    start_date: date = Field(description="First day of the range (inclusive)")
    end_date: date = Field(description="Last day of the range (inclusive)")


class ToggleChannelRequest(BaseModel):
    channel: str = Field(description="Channel to add or remove, e.g. 'Google Ads'")


class UpdateSegmentRequest(BaseModel):
    segment: str = Field(description="Customer segment, e.g. 'High Value'")


def _filter_response(session: DashboardSession) -> FilterStateResponse:
    filters = session.filters
    return FilterStateResponse(
        start_date=filters.date_range.start,
        end_date=filters.date_range.end,
        selected_channels=[c for c in filters.available_channels if c in filters.selected_channels],
        selected_segment=filters.selected_segment,
        has_active_filters=filters.has_active_filters,
        query_key=filters.query_key.digest,
        available_channels=list(filters.available_channels),
        available_segments=list(filters.available_segments),
        is_loading=session.orchestrator.is_loading,
        is_error=session.orchestrator.is_error,
    )


async def _get_filters_impl(ctx: Context) -> FilterStateResponse:
    return _filter_response(get_session())


async def _update_date_range_impl(
    request: UpdateDateRangeRequest, ctx: Context
) -> FilterStateResponse:
    session = get_session()
    session.filters.update_date_range(request.start_date, request.end_date)
    await ctx.info(f"Date range set to {request.start_date} - {request.end_date}")
    return _filter_response(session)


async def _toggle_channel_impl(
    request: ToggleChannelRequest, ctx: Context
) -> FilterStateResponse:
    session = get_session()
    session.filters.toggle_channel(request.channel)
    selected = request.channel in session.filters.selected_channels
    await ctx.info(f"{request.channel} {'selected' if selected else 'deselected'}")
    return _filter_response(session)


async def _select_all_channels_impl(ctx: Context) -> FilterStateResponse:
    session = get_session()
    session.filters.select_all_channels()
    return _filter_response(session)


async def _clear_channels_impl(ctx: Context) -> FilterStateResponse:
    session = get_session()
    session.filters.clear_channels()
    return _filter_response(session)


async def _update_segment_impl(
    request: UpdateSegmentRequest, ctx: Context
) -> FilterStateResponse:
    session = get_session()
    session.filters.update_segment(request.segment)
    await ctx.info(f"Segment set to {request.segment}")
    return _filter_response(session)


async def _reset_filters_impl(ctx: Context) -> FilterStateResponse:
    session = get_session()
    session.reset_filters()
    logger.info("filters_reset", query_key=session.filters.query_key.short)
    await ctx.info("Filters reset to session defaults")
    return _filter_response(session)


@mcp.tool()
async def get_filters(ctx: Context) -> FilterStateResponse:
    """Get the current dashboard filters, the available options and loading status."""
    return await _get_filters_impl(ctx)


@mcp.tool()
async def update_date_range(
    request: UpdateDateRangeRequest, ctx: Context
) -> FilterStateResponse:
    """
    Set the dashboard date range.

    Both bounds are replaced together; start_date must not be after end_date.
    """
    return await _update_date_range_impl(request, ctx)


@mcp.tool()
async def toggle_channel(request: ToggleChannelRequest, ctx: Context) -> FilterStateResponse:
    """Add the channel to the selection if absent, remove it if present."""
    return await _toggle_channel_impl(request, ctx)


@mcp.tool()
async def select_all_channels(ctx: Context) -> FilterStateResponse:
    """Select every marketing channel."""
    return await _select_all_channels_impl(ctx)


@mcp.tool()
async def clear_channels(ctx: Context) -> FilterStateResponse:
    """Deselect every marketing channel."""
    return await _clear_channels_impl(ctx)


@mcp.tool()
async def update_segment(request: UpdateSegmentRequest, ctx: Context) -> FilterStateResponse:
    """Set the customer segment filter."""
    return await _update_segment_impl(request, ctx)


@mcp.tool()
async def reset_filters(ctx: Context) -> FilterStateResponse:
    """
    Restore the filters the session started with.

    Also clears cached metric results, so every metric is fetched again.
    """
    return await _reset_filters_impl(ctx)
