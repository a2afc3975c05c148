"""Metric sources: one async fetch function per lifecycle metric.

The registry maps each metric name (used verbatim as the API route segment
and as the orchestrator slot name) to an awaitable ``fetch(key)`` returning
the metric's JSON array. Two interchangeable implementations exist:

- HttpMetricSource: ``GET {base}/api/lifecycle/{metric}?startDate=..&endDate=..&channels=..&segment=..``
  executed with requests in a worker thread and guarded by a circuit breaker
- SyntheticMetricSource: development fallback backed by seeded generators

The orchestrator's protocol is identical for both; only the fetch function
is swapped.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterator, Mapping
from typing import Any

import requests
import structlog
from pybreaker import CircuitBreakerError

from analytics.services.lifecycle_mcp.config import DashboardSettings
from analytics.services.lifecycle_mcp.resilience import (
    METRIC_API_BREAKER,
    get_circuit_breaker,
)
from lifecycle_attribution.foundation.errors import FetchError, FetchErrorKind
from lifecycle_attribution.foundation.query_key import QueryKey
from lifecycle_attribution.synthetic import generate_metric

logger = structlog.get_logger(__name__)

API_PREFIX = "/api/lifecycle"
MAX_ERROR_BODY_CHARS = 2000

METRIC_NAMES: tuple[str, ...] = (
    "sankey",
    "assistedRevenue",
    "holdoutLift",
    "incrementalityScoreboard",
    "funnelMetrics",
    "behaviorConversion",
    "ltvBySource",
    "productLTVMatrix",
    "churnRisk",
    "repeatRateForecast",
)

FetchFn = Callable[[QueryKey], Awaitable[list[dict[str, Any]]]]


class MetricRegistry:
    """Named set of metric fetch functions.

    Registration order is preserved and used as the display order.
    """

    def __init__(self, sources: Mapping[str, FetchFn] | None = None):
        self._sources: dict[str, FetchFn] = {}
        for name, fetch in (sources or {}).items():
            self.register(name, fetch)

    def register(self, name: str, fetch: FetchFn) -> None:
        if name in self._sources:
            raise ValueError(f"Metric {name!r} is already registered")
        self._sources[name] = fetch

    def get(self, name: str) -> FetchFn:
        try:
            return self._sources[name]
        except KeyError:
            raise KeyError(
                f"Unknown metric {name!r}. Registered: {list(self._sources)}"
            ) from None

    def names(self) -> list[str]:
        return list(self._sources)

    def __contains__(self, name: object) -> bool:
        return name in self._sources

    def __iter__(self) -> Iterator[str]:
        return iter(self._sources)

    def __len__(self) -> int:
        return len(self._sources)


class HttpMetricSource:
    """Fetch one metric from the lifecycle analytics API."""

    def __init__(
        self,
        base_url: str,
        metric: str,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.url = f"{base_url.rstrip('/')}{API_PREFIX}/{metric}"
        self.metric = metric
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._breaker = get_circuit_breaker(METRIC_API_BREAKER)

    async def __call__(self, key: QueryKey) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._get, key)

    def _get(self, key: QueryKey) -> list[dict[str, Any]]:
        params = key.to_params()
        try:
            response = self._breaker.call(
                self._session.get, self.url, params=params, timeout=self.timeout_seconds
            )
        except CircuitBreakerError as e:
            raise FetchError(
                self.metric,
                f"Lifecycle API unavailable (circuit open): {e}",
                kind=FetchErrorKind.UNAVAILABLE,
            ) from e
        except requests.Timeout as e:
            raise FetchError(
                self.metric,
                f"Timed out fetching {self.metric} after {self.timeout_seconds}s",
                kind=FetchErrorKind.TIMEOUT,
            ) from e
        except requests.RequestException as e:
            raise FetchError(
                self.metric,
                f"Network error fetching {self.metric}: {e}",
                kind=FetchErrorKind.NETWORK,
            ) from e

        if not response.ok:
            raise FetchError(
                self.metric,
                f"Failed to fetch {self.metric}: HTTP {response.status_code}",
                kind=FetchErrorKind.HTTP,
                status_code=response.status_code,
                body=response.text[:MAX_ERROR_BODY_CHARS],
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise FetchError(
                self.metric,
                f"Invalid JSON in {self.metric} response",
                kind=FetchErrorKind.HTTP,
                status_code=response.status_code,
                body=response.text[:MAX_ERROR_BODY_CHARS],
            ) from e

        if not isinstance(payload, list):
            raise FetchError(
                self.metric,
                f"Expected a JSON array for {self.metric}, got {type(payload).__name__}",
                kind=FetchErrorKind.HTTP,
                status_code=response.status_code,
            )
        return payload


class SyntheticMetricSource:
    """Resolve one metric from the seeded synthetic generators."""

    def __init__(self, metric: str, latency_seconds: float = 0.5):
        self.metric = metric
        self.latency_seconds = latency_seconds

    async def __call__(self, key: QueryKey) -> list[dict[str, Any]]:
        if self.latency_seconds > 0:
            await asyncio.sleep(self.latency_seconds)
        return generate_metric(self.metric, key)


def build_registry(settings: DashboardSettings) -> MetricRegistry:
    """Build the full metric registry for ``settings``.

    Uses the HTTP API when ``api_base_url`` is configured, the synthetic
    generators otherwise.
    """
    registry = MetricRegistry()
    if settings.uses_synthetic_data:
        for metric in METRIC_NAMES:
            registry.register(
                metric, SyntheticMetricSource(metric, settings.synthetic_latency_seconds)
            )
        logger.info("metric_registry_built", mode="synthetic", metrics=len(registry))
        return registry

    session = requests.Session()
    for metric in METRIC_NAMES:
        registry.register(
            metric,
            HttpMetricSource(
                settings.api_base_url,
                metric,
                timeout_seconds=settings.fetch_timeout_seconds,
                session=session,
            ),
        )
    logger.info(
        "metric_registry_built",
        mode="http",
        base_url=settings.api_base_url,
        metrics=len(registry),
    )
    return registry
