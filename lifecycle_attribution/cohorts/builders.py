"""Map raw chart interaction payloads into canonical cohorts.

Each visualization kind owns exactly one builder registered in
:data:`COHORT_BUILDERS`. A builder receives the click payload plus the full
dataset currently rendered by that chart (needed for rank and cell
look-ups) and returns a :mod:`~lifecycle_attribution.cohorts.models` record.

:func:`build_cohort` is the single entry point: it never raises. Unknown
kinds, non-mapping payloads and payloads missing required fields all yield
``None``, meaning "no-op, nothing to dispatch".

Quick Start
-----------
>>> cohort = build_cohort(
...     "sankey_link",
...     {"source": "Google Ads", "target": "Product View", "value": 1200},
... )
>>> cohort.to_payload()["description"]
'Google Ads → Product View journey'
"""

from __future__ import annotations

import logging
import math
from numbers import Real
from typing import Any, Callable, Mapping, Sequence

from pydantic import ValidationError

from lifecycle_attribution.cohorts.models import (
    ActionGuideRequest,
    AssistedChannelCohort,
    BehaviorSegmentCohort,
    ChurnRiskSegmentCohort,
    CohortBase,
    FunnelStageCohort,
    HoldoutCampaignCohort,
    IncrementalityCohort,
    JourneyPathCohort,
    LTVSourceCohort,
    ProductLTVSegmentCohort,
    RepeatRateCohort,
    StageUsersCohort,
)
from lifecycle_attribution.foundation.errors import MalformedPayloadError

logger = logging.getLogger(__name__)

Payload = Mapping[str, Any]
Dataset = Sequence[Mapping[str, Any]]
CohortBuilder = Callable[[Payload, Dataset], CohortBase]

#: Average assisted revenue per user, used to estimate assisted-channel audience size.
REVENUE_PER_ASSISTED_USER = 45

#: Rank window for incrementality actions: top N scale, bottom N retest.
INCREMENTALITY_RANK_WINDOW = 3

COHORT_BUILDERS: dict[str, CohortBuilder] = {}


def register_builder(kind: str) -> Callable[[CohortBuilder], CohortBuilder]:
    """Register ``func`` as the builder for chart ``kind``."""

    def decorator(func: CohortBuilder) -> CohortBuilder:
        if kind in COHORT_BUILDERS:
            raise ValueError(f"Builder already registered for chart kind {kind!r}")
        COHORT_BUILDERS[kind] = func
        return func

    return decorator


def build_cohort(
    kind: str, payload: Any, dataset: Dataset | None = None
) -> CohortBase | None:
    """Translate a chart interaction into a cohort, or ``None`` when there is nothing to act on.

    Parameters
    ----------
    kind:
        Chart kind (see :func:`available_chart_kinds`).
    payload:
        Raw interaction payload, typically the clicked datum.
    dataset:
        Full dataset currently shown by the chart. Rank-based and cell-based
        fields are recomputed against it on every call.
    """
    builder = COHORT_BUILDERS.get(kind)
    if builder is None:
        logger.debug("No cohort builder for chart kind %r", kind)
        return None
    if not isinstance(payload, Mapping) or not payload:
        return None
    rows = [row for row in (dataset or ()) if isinstance(row, Mapping)]
    try:
        return builder(payload, rows)
    except (MalformedPayloadError, ValidationError) as exc:
        logger.debug("Ignoring %s interaction payload: %s", kind, exc)
        return None


def available_chart_kinds() -> list[str]:
    return sorted(COHORT_BUILDERS)


# -------- payload helpers --------
def _text(payload: Payload, field: str) -> str:
    value = payload.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MalformedPayloadError(f"missing field {field!r}")
    return str(value)


def _number(payload: Payload, field: str) -> float:
    value = payload.get(field)
    if isinstance(value, bool) or not isinstance(value, Real):
        raise MalformedPayloadError(f"field {field!r} must be numeric, got {value!r}")
    try:
        value = float(value)
    except OverflowError:
        raise MalformedPayloadError(f"field {field!r} is out of range") from None
    if not math.isfinite(value):
        raise MalformedPayloadError(f"field {field!r} must be finite")
    return value


def _optional_number(payload: Payload, field: str) -> float | None:
    if payload.get(field) is None:
        return None
    return _number(payload, field)


def _number_or(row: Payload, field: str, default: float = 0.0) -> float:
    """Lenient numeric read for dataset rows, which are not validated like payloads."""
    try:
        return _number(row, field)
    except MalformedPayloadError:
        return default


def _find_row(dataset: Dataset, **match: str) -> Payload | None:
    for row in dataset:
        if all(row.get(k) == v for k, v in match.items()):
            return row
    return None


def lift_percentage(treated: float, baseline: float) -> float | None:
    """Percentage lift of ``treated`` over ``baseline``, rounded to one decimal."""
    if baseline == 0:
        return None
    return round((treated - baseline) / baseline * 100, 1)


def incrementality_action(position: int, total: int) -> str:
    if position <= INCREMENTALITY_RANK_WINDOW:
        return "scale"
    if position > total - INCREMENTALITY_RANK_WINDOW:
        return "retest"
    return "optimize"


def churn_risk_label(risk_score: float) -> str:
    if risk_score >= 75:
        return "High"
    if risk_score >= 50:
        return "Medium"
    if risk_score >= 25:
        return "Low-Med"
    return "Low"


# -------- builders --------
@register_builder("sankey_link")
def _sankey_link(payload: Payload, dataset: Dataset) -> CohortBase:
    source = _text(payload, "source")
    target = _text(payload, "target")
    users = int(_number(payload, "value"))
    return JourneyPathCohort(
        source=source,
        target=target,
        users=users,
        description=f"{source} → {target} journey",
    )


@register_builder("sankey_node")
def _sankey_node(payload: Payload, dataset: Dataset) -> CohortBase:
    stage = _text(payload, "name")
    users = _optional_number(payload, "value")
    if users is None:
        # d3-sankey node value: the larger of total inflow and total outflow.
        inflow = sum(_number_or(r, "value") for r in dataset if r.get("target") == stage)
        outflow = sum(_number_or(r, "value") for r in dataset if r.get("source") == stage)
        users = max(inflow, outflow)
    return StageUsersCohort(
        stage=stage,
        users=int(users),
        description=f"Users at {stage} stage",
    )


@register_builder("assisted_revenue")
def _assisted_revenue(payload: Payload, dataset: Dataset) -> CohortBase:
    channel = _text(payload, "channel")
    assisted = _number(payload, "assistedRevenue")
    last_click = _number(payload, "lastClickRevenue")
    return AssistedChannelCohort(
        channel=channel,
        assisted_revenue=assisted,
        last_click_revenue=last_click,
        users=math.floor(assisted / REVENUE_PER_ASSISTED_USER),
        lift_pct=lift_percentage(assisted, last_click),
        description=f"{channel} assisted revenue cohort",
    )


@register_builder("holdout_lift")
def _holdout_lift(payload: Payload, dataset: Dataset) -> CohortBase:
    campaign = _text(payload, "campaign")
    exposed = _number(payload, "exposedRevenue")
    holdout = _number(payload, "holdoutRevenue")
    lift = _optional_number(payload, "lift")
    if lift is None:
        lift = lift_percentage(exposed, holdout)
    return HoldoutCampaignCohort(
        campaign=campaign,
        exposed_revenue=exposed,
        holdout_revenue=holdout,
        lift=lift,
        incremental_revenue=exposed - holdout,
        description=f"{campaign} holdout test cohort",
    )


@register_builder("incrementality")
def _incrementality(payload: Payload, dataset: Dataset) -> CohortBase:
    channel = _text(payload, "channel")
    lift_per_dollar = _number(payload, "liftPerDollar")
    spend = _number(payload, "spend")
    incremental = _number(payload, "incrementalRevenue")

    pool = list(dataset)
    if _find_row(pool, channel=channel) is None:
        pool.append({**payload, "channel": channel, "liftPerDollar": lift_per_dollar})
    ranked = sorted(pool, key=lambda row: -_number_or(row, "liftPerDollar"))
    position = next(
        (i for i, row in enumerate(ranked, start=1) if str(row.get("channel")) == channel),
        None,
    )
    if position is None:
        raise MalformedPayloadError(f"channel {channel!r} could not be ranked")
    action = incrementality_action(position, len(ranked))
    label = {
        "scale": "Top performer to scale",
        "retest": "Needs retesting",
        "optimize": "Optimization candidate",
    }[action]
    return IncrementalityCohort(
        channel=channel,
        lift_per_dollar=lift_per_dollar,
        spend=spend,
        incremental_revenue=incremental,
        position=position,
        action=action,
        description=f"{channel} - {label}",
    )


@register_builder("funnel")
def _funnel(payload: Payload, dataset: Dataset) -> CohortBase:
    stage = _text(payload, "stage")
    return FunnelStageCohort(
        stage=stage,
        users=int(_number(payload, "users")),
        conversion_rate=_number(payload, "conversionRate"),
        time_on_page=_optional_number(payload, "timeOnPage"),
        scroll_depth=_optional_number(payload, "scrollDepth"),
        description=f"{stage} stage optimization cohort",
    )


@register_builder("behavior_conversion")
def _behavior_conversion(payload: Payload, dataset: Dataset) -> CohortBase:
    probability = _number(payload, "conversionProbability")
    return BehaviorSegmentCohort(
        behavior_metric=_number(payload, "behaviorMetric"),
        conversion_probability=probability,
        sessions=int(_number(payload, "sessions")),
        description=f"High-probability behavior segment ({probability:.1f}% conversion)",
    )


@register_builder("ltv_by_source")
def _ltv_by_source(payload: Payload, dataset: Dataset) -> CohortBase:
    source = _text(payload, "source")
    return LTVSourceCohort(
        source=source,
        date=_text(payload, "date"),
        ltv30=_number(payload, "LTV30"),
        ltv60=_number(payload, "LTV60"),
        ltv90=_number(payload, "LTV90"),
        description=f"LTV cohort for {source} source",
    )


@register_builder("product_ltv_matrix")
def _product_ltv_matrix(payload: Payload, dataset: Dataset) -> CohortBase:
    product = _text(payload, "firstProduct")
    bucket = _text(payload, "LTVBucket")
    cell = _find_row(dataset, firstProduct=product, LTVBucket=bucket) or payload
    count = _number_or(cell, "count")
    return ProductLTVSegmentCohort(
        first_product=product,
        ltv_bucket=bucket,
        count=int(count),
        description=f"{product} customers with {bucket} LTV",
    )


@register_builder("churn_risk")
def _churn_risk(payload: Payload, dataset: Dataset) -> CohortBase:
    segment = _text(payload, "segment")
    recency = _text(payload, "recency")
    cell = _find_row(dataset, segment=segment, recency=recency) or payload
    risk_score = _number_or(cell, "riskScore")
    label = churn_risk_label(risk_score)
    return ChurnRiskSegmentCohort(
        segment=segment,
        recency=recency,
        risk_score=risk_score,
        risk_label=label,
        customers=int(_number_or(cell, "customers")),
        description=f"{segment} customers with {recency} recency - {label} churn risk",
    )


@register_builder("repeat_rate_forecast")
def _repeat_rate_forecast(payload: Payload, dataset: Dataset) -> CohortBase:
    month = _text(payload, "cohortMonth")
    return RepeatRateCohort(
        cohort_month=month,
        actual_rate_2nd=_number(payload, "actualRate2nd"),
        forecast_rate_2nd=_number(payload, "forecastRate2nd"),
        customers=int(_number(payload, "customers")),
        description=f"{month} cohort repeat rate analysis",
    )


@register_builder("action_plan")
def _action_plan(payload: Payload, dataset: Dataset) -> CohortBase:
    title = _text(payload, "title")
    return ActionGuideRequest(
        action_id=int(_number(payload, "id")),
        title=title,
        category=_text(payload, "category"),
        description=f"Generate detailed implementation guide for: {title}",
    )
