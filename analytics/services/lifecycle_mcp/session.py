"""Dashboard session: one filter context bound to one data orchestrator.

FastMCP's Context is per-request, so the session is the long-lived owner of
the dashboard state shared by all tool calls. It wires

    filter mutation -> query key recomputed -> orchestrator.reconcile(key)

and routes chart interactions through the cohort builders to the action
dispatcher.

Lifecycle is explicit: :func:`start_session` (inside the running event loop,
normally from the server lifespan) creates and starts the session,
:func:`close_session` cancels in-flight work. :func:`get_session` raises
until a session has been started.
"""

from collections.abc import Mapping
from datetime import date
from typing import Any

import structlog

from analytics.services.lifecycle_mcp.config import DashboardSettings
from analytics.services.lifecycle_mcp.dispatch import (
    ActionDispatcher,
    CohortSink,
    DispatchResult,
    build_sink,
)
from analytics.services.lifecycle_mcp.orchestration import (
    DataOrchestrator,
    MetricRegistry,
    ResultCache,
    build_registry,
)
from lifecycle_attribution.cohorts import CohortBase, build_cohort
from lifecycle_attribution.foundation import FilterState, QueryKey

logger = structlog.get_logger(__name__)

# Dataset each chart kind renders; the builders rank and look up cells in it.
CHART_KIND_METRICS: dict[str, str | None] = {
    "sankey_link": "sankey",
    "sankey_node": "sankey",
    "assisted_revenue": "assistedRevenue",
    "holdout_lift": "holdoutLift",
    "incrementality": "incrementalityScoreboard",
    "funnel": "funnelMetrics",
    "behavior_conversion": "behaviorConversion",
    "ltv_by_source": "ltvBySource",
    "product_ltv_matrix": "productLTVMatrix",
    "churn_risk": "churnRisk",
    "repeat_rate_forecast": "repeatRateForecast",
    "action_plan": None,
}


class DashboardSession:
    """Owner of the filter state, the orchestrator and the dispatcher."""

    def __init__(
        self,
        settings: DashboardSettings | None = None,
        registry: MetricRegistry | None = None,
        sink: CohortSink | None = None,
        today: date | None = None,
        metrics_collector=None,
    ):
        self.settings = settings or DashboardSettings()
        self.filters = FilterState(today=today)
        self.registry = registry if registry is not None else build_registry(self.settings)
        self.orchestrator = DataOrchestrator(
            self.registry,
            cache=ResultCache(
                max_keys=self.settings.cache_max_keys,
                ttl_seconds=self.settings.cache_ttl_seconds,
            ),
            fetch_timeout_seconds=self.settings.fetch_timeout_seconds,
            metrics_collector=metrics_collector,
        )
        self.dispatcher = ActionDispatcher(
            sink if sink is not None else build_sink(self.settings)
        )
        self._unsubscribe = None

    @property
    def started(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        """Subscribe to filter changes and fetch data for the default filters."""
        if self.started:
            return
        self._unsubscribe = self.filters.subscribe(self._on_filters_changed)
        self.orchestrator.reconcile(self.filters.query_key)
        logger.info(
            "dashboard_session_started",
            query_key=self.filters.query_key.short,
            metrics=len(self.registry),
            synthetic=self.settings.uses_synthetic_data,
        )

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self.dispatcher.close()
        await self.orchestrator.close()
        logger.info("dashboard_session_closed")

    def _on_filters_changed(self, state: FilterState, key: QueryKey) -> None:
        self.orchestrator.reconcile(key)

    def reset_filters(self) -> None:
        """Restore the session defaults and drop every cached result."""
        self.orchestrator.cache.clear()
        self.filters.reset_filters()

    # -------- dashboard data --------
    def dataset(self, metric: str) -> list[dict[str, Any]]:
        """Currently resolved records for ``metric`` (empty unless loaded)."""
        result = self.orchestrator.result(metric)
        if result.is_success and isinstance(result.data, list):
            return result.data
        return []

    def build_cohort(
        self, chart_kind: str, payload: Mapping[str, Any]
    ) -> CohortBase | None:
        """Build a cohort for a click on ``chart_kind`` against the dataset it renders."""
        metric = CHART_KIND_METRICS.get(chart_kind)
        dataset = self.dataset(metric) if metric in self.registry else []
        return build_cohort(chart_kind, payload, dataset)

    async def activate_cohort(
        self, chart_kind: str, payload: Mapping[str, Any]
    ) -> tuple[CohortBase | None, DispatchResult | None]:
        """Build and dispatch; returns ``(None, None)`` when there is nothing to act on."""
        cohort = self.build_cohort(chart_kind, payload)
        if cohort is None:
            logger.info("cohort_not_built", chart_kind=chart_kind)
            return None, None
        result = await self.dispatcher.dispatch(cohort)
        return cohort, result


# Global session instance
_session: DashboardSession | None = None


def start_session(
    settings: DashboardSettings | None = None, **kwargs: Any
) -> DashboardSession:
    """Create and start the process-wide session (replaces no running session)."""
    global _session
    if _session is not None:
        raise RuntimeError("Dashboard session is already running")
    session = DashboardSession(settings, **kwargs)
    session.start()
    _session = session
    return session


def get_session() -> DashboardSession:
    """Get the running session instance."""
    if _session is None:
        raise RuntimeError("Dashboard session not started")
    return _session


async def close_session() -> None:
    global _session
    if _session is None:
        return
    session, _session = _session, None
    await session.close()
