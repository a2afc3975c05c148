"""Tests for the dashboard session wiring (filters -> orchestrator -> dispatcher)."""

from datetime import date

import pytest
import pytest_asyncio
from conftest import RecordingSink

from analytics.services.lifecycle_mcp import session as session_module
from analytics.services.lifecycle_mcp.config import DashboardSettings
from analytics.services.lifecycle_mcp.orchestration import METRIC_NAMES, MetricStatus
from analytics.services.lifecycle_mcp.session import (
    CHART_KIND_METRICS,
    DashboardSession,
    close_session,
    get_session,
    start_session,
)
from lifecycle_attribution.cohorts import available_chart_kinds

TODAY = date(2024, 3, 31)
SETTINGS = DashboardSettings(synthetic_latency_seconds=0)


@pytest_asyncio.fixture
async def dashboard(collector):
    sink = RecordingSink()
    session = DashboardSession(SETTINGS, sink=sink, today=TODAY, metrics_collector=collector)
    session.start()
    await session.orchestrator.settle()
    yield session
    await session.close()


def test_every_chart_kind_is_mapped():
    assert sorted(CHART_KIND_METRICS) == available_chart_kinds()
    assert {m for m in CHART_KIND_METRICS.values() if m} <= set(METRIC_NAMES)


class TestDashboardSession:
    @pytest.mark.asyncio
    async def test_start_loads_every_metric_for_default_filters(self, dashboard):
        results = dashboard.orchestrator.results
        assert set(results) == set(METRIC_NAMES)
        for result in results.values():
            assert result.status is MetricStatus.SUCCESS
            assert result.key == dashboard.filters.query_key

    @pytest.mark.asyncio
    async def test_filter_mutation_rebinds_all_slots(self, dashboard):
        dashboard.filters.update_segment("At Risk")
        new_key = dashboard.filters.query_key

        assert dashboard.orchestrator.is_loading is True
        assert all(r.data is None for r in dashboard.orchestrator.results.values())

        await dashboard.orchestrator.settle()
        assert all(r.key == new_key for r in dashboard.orchestrator.results.values())
        assert dashboard.orchestrator.is_loading is False

    @pytest.mark.asyncio
    async def test_rapid_mutations_settle_on_last_key(self, dashboard):
        dashboard.filters.toggle_channel("Meta")
        dashboard.filters.toggle_channel("Email")
        dashboard.filters.update_segment("New Customers")
        await dashboard.orchestrator.settle()

        final_key = dashboard.filters.query_key
        for result in dashboard.orchestrator.results.values():
            assert result.status is MetricStatus.SUCCESS
            assert result.key == final_key
        channels = {row["channel"] for row in dashboard.dataset("assistedRevenue")}
        assert "Meta" not in channels
        assert "Email" not in channels

    @pytest.mark.asyncio
    async def test_reset_filters_clears_cache(self, dashboard):
        dashboard.filters.update_segment("High Value")
        await dashboard.orchestrator.settle()
        assert dashboard.orchestrator.cache.size() > 0

        dashboard.reset_filters()

        assert dashboard.orchestrator.cache.size() == 0
        assert dashboard.filters.has_active_filters is False
        assert dashboard.orchestrator.is_loading is True
        await dashboard.orchestrator.settle()
        assert dashboard.orchestrator.is_loading is False

    @pytest.mark.asyncio
    async def test_cohort_uses_loaded_dataset(self, dashboard):
        churn = dashboard.dataset("churnRisk")
        cell = churn[0]

        cohort = dashboard.build_cohort(
            "churn_risk", {"segment": cell["segment"], "recency": cell["recency"]}
        )

        assert cohort.risk_score == cell["riskScore"]
        assert cohort.customers == cell["customers"]

    @pytest.mark.asyncio
    async def test_activate_cohort_dispatches(self, dashboard):
        cohort, result = await dashboard.activate_cohort(
            "sankey_link", {"source": "Meta", "target": "Product View", "value": 800}
        )

        assert cohort.type == "journey_path"
        assert result.ok is True
        assert dashboard.dispatcher.sink.sent[0]["cohort"]["users"] == 800

    @pytest.mark.asyncio
    async def test_activate_cohort_with_empty_payload_is_a_no_op(self, dashboard):
        assert await dashboard.activate_cohort("funnel", {}) == (None, None)
        assert dashboard.dispatcher.sink.sent == []

    @pytest.mark.asyncio
    async def test_close_stops_reacting_to_filters(self, collector):
        session = DashboardSession(SETTINGS, today=TODAY, metrics_collector=collector)
        session.start()
        await session.close()

        session.filters.update_segment("At Risk")

        assert session.orchestrator.inflight_count == 0
        assert session.started is False


class TestSessionHolder:
    @pytest.mark.asyncio
    async def test_get_session_before_start_raises(self):
        assert session_module._session is None
        with pytest.raises(RuntimeError, match="not started"):
            get_session()

    @pytest.mark.asyncio
    async def test_start_get_close(self, collector):
        session = start_session(SETTINGS, today=TODAY, metrics_collector=collector)
        try:
            assert get_session() is session
            assert session.started is True
            with pytest.raises(RuntimeError, match="already running"):
                start_session(SETTINGS)
        finally:
            await close_session()

        with pytest.raises(RuntimeError):
            get_session()
        await close_session()  # closing twice is harmless
