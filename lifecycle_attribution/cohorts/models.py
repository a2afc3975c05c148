"""Canonical cohort records produced from chart interactions.

Every cohort carries a ``type`` tag that determines its required field set,
a deterministic ``description`` and only primitive values. Models are frozen
so a cohort handed to the action dispatcher cannot be mutated in flight, and
serialize with the camelCase field names downstream activation tools expect
(``model_dump(by_alias=True)``).
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class CohortBase(BaseModel):
    """Fields and serialization settings shared by every cohort type."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )

    type: str
    description: str

    def to_payload(self) -> dict[str, object]:
        """Return the JSON-ready payload sent to external activation systems."""
        return self.model_dump(mode="json", by_alias=True)


class JourneyPathCohort(CohortBase):
    type: Literal["journey_path"] = "journey_path"
    source: str
    target: str
    users: int


class StageUsersCohort(CohortBase):
    type: Literal["stage_users"] = "stage_users"
    stage: str
    users: int


class AssistedChannelCohort(CohortBase):
    type: Literal["assisted_channel"] = "assisted_channel"
    channel: str
    assisted_revenue: float
    last_click_revenue: float
    users: int
    lift_pct: float | None = None


class HoldoutCampaignCohort(CohortBase):
    type: Literal["holdout_campaign"] = "holdout_campaign"
    campaign: str
    exposed_revenue: float
    holdout_revenue: float
    lift: float | None = None
    incremental_revenue: float


class IncrementalityCohort(CohortBase):
    type: Literal["incrementality_cohort"] = "incrementality_cohort"
    channel: str
    lift_per_dollar: float
    spend: float
    incremental_revenue: float
    position: int
    action: Literal["scale", "optimize", "retest"]


class FunnelStageCohort(CohortBase):
    type: Literal["funnel_stage"] = "funnel_stage"
    stage: str
    users: int
    conversion_rate: float
    time_on_page: float | None = None
    scroll_depth: float | None = None


class BehaviorSegmentCohort(CohortBase):
    type: Literal["behavior_segment"] = "behavior_segment"
    behavior_metric: float
    conversion_probability: float
    sessions: int


class LTVSourceCohort(CohortBase):
    type: Literal["ltv_source"] = "ltv_source"
    source: str
    date: str
    ltv30: float = Field(alias="LTV30")
    ltv60: float = Field(alias="LTV60")
    ltv90: float = Field(alias="LTV90")


class ProductLTVSegmentCohort(CohortBase):
    type: Literal["product_ltv_segment"] = "product_ltv_segment"
    first_product: str
    ltv_bucket: str = Field(alias="LTVBucket")
    count: int


class ChurnRiskSegmentCohort(CohortBase):
    type: Literal["churn_risk_segment"] = "churn_risk_segment"
    segment: str
    recency: str
    risk_score: float
    risk_label: Literal["High", "Medium", "Low-Med", "Low"]
    customers: int


class RepeatRateCohort(CohortBase):
    type: Literal["repeat_rate_cohort"] = "repeat_rate_cohort"
    cohort_month: str
    actual_rate_2nd: float = Field(alias="actualRate2nd")
    forecast_rate_2nd: float = Field(alias="forecastRate2nd")
    customers: int


class ActionGuideRequest(CohortBase):
    type: Literal["get_action_guide"] = "get_action_guide"
    action_id: int
    title: str
    category: str


Cohort = Annotated[
    Union[
        JourneyPathCohort,
        StageUsersCohort,
        AssistedChannelCohort,
        HoldoutCampaignCohort,
        IncrementalityCohort,
        FunnelStageCohort,
        BehaviorSegmentCohort,
        LTVSourceCohort,
        ProductLTVSegmentCohort,
        ChurnRiskSegmentCohort,
        RepeatRateCohort,
        ActionGuideRequest,
    ],
    Field(discriminator="type"),
]

cohort_adapter: TypeAdapter[Cohort] = TypeAdapter(Cohort)


def parse_cohort(payload: dict[str, object]) -> CohortBase:
    """Validate a serialized cohort (camelCase or snake_case) back into its model."""
    return cohort_adapter.validate_python(payload)
