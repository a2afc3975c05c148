"""Cohort Activation MCP Tool

Turns a chart interaction (the clicked datum of one visualization) into a
canonical cohort and hands it to the action dispatcher. Rank- and
cell-based fields are computed against the dataset currently loaded for
that chart.
"""

from typing import Any

import structlog
from fastmcp import Context
from pydantic import BaseModel, Field

from analytics.services.lifecycle_mcp.instance import mcp
from analytics.services.lifecycle_mcp.session import get_session
from lifecycle_attribution.cohorts import available_chart_kinds

logger = structlog.get_logger(__name__)


class ActivateCohortRequest(BaseModel):
    """Request to build and dispatch a cohort."""

    chart_kind: str = Field(
        description="Visualization that was clicked, e.g. 'sankey_link', 'churn_risk'"
    )
    payload: dict[str, Any] = Field(description="Clicked datum as rendered by the chart")
    dry_run: bool = Field(
        default=False, description="Build the cohort without dispatching it"
    )


class ActivateCohortResponse(BaseModel):
    built: bool = Field(description="False when the interaction yields no cohort")
    cohort: dict[str, Any] | None = None
    dispatch: dict[str, Any] | None = None


async def _activate_cohort_impl(
    request: ActivateCohortRequest, ctx: Context
) -> ActivateCohortResponse:
    kinds = available_chart_kinds()
    if request.chart_kind not in kinds:
        raise ValueError(f"Unknown chart kind {request.chart_kind!r}. Available: {kinds}")

    session = get_session()

    if request.dry_run:
        cohort = session.build_cohort(request.chart_kind, request.payload)
        return ActivateCohortResponse(
            built=cohort is not None,
            cohort=cohort.to_payload() if cohort is not None else None,
        )

    cohort, result = await session.activate_cohort(request.chart_kind, request.payload)
    if cohort is None:
        await ctx.info(f"No cohort for this {request.chart_kind} interaction")
        return ActivateCohortResponse(built=False)

    await ctx.info(cohort.description)
    return ActivateCohortResponse(
        built=True,
        cohort=cohort.to_payload(),
        dispatch=result.as_dict() if result is not None else None,
    )


@mcp.tool()
async def activate_cohort(
    request: ActivateCohortRequest, ctx: Context
) -> ActivateCohortResponse:
    """
    Build a cohort from a chart click and dispatch it for activation.

    Supported chart kinds: sankey_link, sankey_node, assisted_revenue,
    holdout_lift, incrementality, funnel, behavior_conversion, ltv_by_source,
    product_ltv_matrix, churn_risk, repeat_rate_forecast, action_plan.

    Returns built=False when the payload is empty or lacks the fields the
    chart's cohort type needs. Dispatch failures are reported in
    ``dispatch.error`` (network, validation or external_rejection) and are
    not retried.
    """
    return await _activate_cohort_impl(request, ctx)
