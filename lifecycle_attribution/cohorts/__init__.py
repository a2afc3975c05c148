"""Cohort extraction from chart interactions.

Chart-specific click payloads are normalized into tagged cohort records
(see :mod:`.models`) by the builder table in :mod:`.builders`.
"""

from .builders import (
    COHORT_BUILDERS,
    available_chart_kinds,
    build_cohort,
    churn_risk_label,
    incrementality_action,
    lift_percentage,
    register_builder,
)
from .models import Cohort, CohortBase, cohort_adapter, parse_cohort

__all__ = [
    "COHORT_BUILDERS",
    "Cohort",
    "CohortBase",
    "available_chart_kinds",
    "build_cohort",
    "churn_risk_label",
    "cohort_adapter",
    "incrementality_action",
    "lift_percentage",
    "parse_cohort",
    "register_builder",
]
