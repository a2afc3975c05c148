"""Orchestration layer for the Lifecycle Attribution dashboard.

Binds every registered metric source to the current filter query key and
caches resolved datasets.
"""

from analytics.services.lifecycle_mcp.orchestration.data_orchestrator import (
    DataOrchestrator,
    ErrorInfo,
    MetricResult,
    MetricStatus,
)
from analytics.services.lifecycle_mcp.orchestration.result_cache import ResultCache
from analytics.services.lifecycle_mcp.orchestration.sources import (
    METRIC_NAMES,
    HttpMetricSource,
    MetricRegistry,
    SyntheticMetricSource,
    build_registry,
)

__all__ = [
    "METRIC_NAMES",
    "DataOrchestrator",
    "ErrorInfo",
    "HttpMetricSource",
    "MetricRegistry",
    "MetricResult",
    "MetricStatus",
    "ResultCache",
    "SyntheticMetricSource",
    "build_registry",
]
