"""Tests for the HTTP and synthetic metric sources."""

from unittest.mock import MagicMock

import pytest
import requests
from conftest import make_key

from analytics.services.lifecycle_mcp.config import DashboardSettings
from analytics.services.lifecycle_mcp.orchestration.sources import (
    METRIC_NAMES,
    HttpMetricSource,
    MetricRegistry,
    SyntheticMetricSource,
    build_registry,
)
from lifecycle_attribution.foundation.errors import FetchError, FetchErrorKind
from lifecycle_attribution.synthetic import generate_metric

KEY = make_key("High Value", channels=["Meta", "Email"])


def _response(status_code=200, json_data=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.text = text
    response.json.return_value = json_data
    return response


def _source(response=None, side_effect=None):
    session = MagicMock(spec=requests.Session)
    if side_effect is not None:
        session.get.side_effect = side_effect
    else:
        session.get.return_value = response
    source = HttpMetricSource(
        "https://lifecycle.example.com/", "churnRisk", timeout_seconds=5, session=session
    )
    return source, session


class TestHttpMetricSource:
    @pytest.mark.asyncio
    async def test_successful_fetch(self):
        rows = [{"segment": "VIP", "recency": "0-7 days", "riskScore": 12.0, "customers": 90}]
        source, session = _source(_response(json_data=rows))

        assert await source(KEY) == rows

        session.get.assert_called_once_with(
            "https://lifecycle.example.com/api/lifecycle/churnRisk",
            params={
                "startDate": "2024-03-01",
                "endDate": "2024-03-31",
                "channels": "Email,Meta",
                "segment": "High Value",
            },
            timeout=5,
        )

    @pytest.mark.asyncio
    async def test_non_2xx_carries_status_and_body(self):
        source, _ = _source(_response(status_code=503, text="maintenance"))

        with pytest.raises(FetchError) as exc_info:
            await source(KEY)

        assert exc_info.value.kind is FetchErrorKind.HTTP
        assert exc_info.value.status_code == 503
        assert exc_info.value.body == "maintenance"
        assert exc_info.value.metric == "churnRisk"

    @pytest.mark.asyncio
    async def test_non_array_json_rejected(self):
        source, _ = _source(_response(json_data={"rows": []}))
        with pytest.raises(FetchError, match="Expected a JSON array") as exc_info:
            await source(KEY)
        assert exc_info.value.kind is FetchErrorKind.HTTP

    @pytest.mark.asyncio
    async def test_invalid_json_rejected(self):
        response = _response(text="<html>")
        response.json.side_effect = ValueError("no json")
        source, _ = _source(response)
        with pytest.raises(FetchError, match="Invalid JSON"):
            await source(KEY)

    @pytest.mark.asyncio
    async def test_timeout_classified(self):
        source, _ = _source(side_effect=requests.Timeout("read timed out"))
        with pytest.raises(FetchError) as exc_info:
            await source(KEY)
        assert exc_info.value.kind is FetchErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_connection_error_classified(self):
        source, _ = _source(side_effect=requests.ConnectionError("refused"))
        with pytest.raises(FetchError) as exc_info:
            await source(KEY)
        assert exc_info.value.kind is FetchErrorKind.NETWORK

    @pytest.mark.asyncio
    async def test_open_circuit_fails_fast(self):
        """Test repeated network failures open the breaker and skip the request."""
        source, session = _source(side_effect=requests.ConnectionError("refused"))

        for _ in range(5):
            with pytest.raises(FetchError):
                await source(KEY)

        with pytest.raises(FetchError) as exc_info:
            await source(KEY)

        assert exc_info.value.kind is FetchErrorKind.UNAVAILABLE
        assert session.get.call_count == 5


class TestSyntheticMetricSource:
    @pytest.mark.asyncio
    async def test_returns_generated_dataset(self):
        source = SyntheticMetricSource("funnelMetrics", latency_seconds=0)
        assert await source(KEY) == generate_metric("funnelMetrics", KEY)


class TestRegistry:
    def test_register_and_lookup(self):
        fetch = SyntheticMetricSource("sankey", 0)
        registry = MetricRegistry({"sankey": fetch})
        assert registry.get("sankey") is fetch
        assert "sankey" in registry
        assert len(registry) == 1

    def test_duplicate_registration_rejected(self):
        registry = MetricRegistry({"sankey": SyntheticMetricSource("sankey", 0)})
        with pytest.raises(ValueError):
            registry.register("sankey", SyntheticMetricSource("sankey", 0))

    def test_unknown_metric(self):
        with pytest.raises(KeyError):
            MetricRegistry().get("pieChart")

    def test_build_registry_synthetic_by_default(self):
        registry = build_registry(DashboardSettings())
        assert registry.names() == list(METRIC_NAMES)
        assert all(isinstance(registry.get(m), SyntheticMetricSource) for m in registry)

    def test_build_registry_http_when_base_url_set(self):
        registry = build_registry(
            DashboardSettings(api_base_url="https://lifecycle.example.com", fetch_timeout_seconds=7)
        )
        source = registry.get("ltvBySource")
        assert isinstance(source, HttpMetricSource)
        assert source.url == "https://lifecycle.example.com/api/lifecycle/ltvBySource"
        assert source.timeout_seconds == 7
