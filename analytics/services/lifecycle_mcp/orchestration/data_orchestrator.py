"""Data Orchestrator for filter-scoped lifecycle metrics

This module keeps every registered metric consistent with the current filter
context:
1. Receives the query key recomputed after each filter mutation
2. Reconciles every metric slot against that key (cache hit, in-flight
   fetch, or new fetch)
3. Commits a fetch result only if its label still matches the slot's
   expected key, so a slow response for an old filter never overwrites data
   for the current one
4. Aggregates per-metric status into ``is_loading`` / ``is_error``

Design:
- Single asyncio event loop: reconcile and commits run on the loop thread,
  fetches are tasks that resume on it
- Stale-key policy: on key change a slot is cleared to loading/None
  immediately (no stale-key data is shown)
- Failures are isolated per metric and never retried automatically;
  ``refresh()`` is the manual retry
- Every fetch is bounded by ``fetch_timeout_seconds``
"""

import asyncio
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog
from opentelemetry import trace

from analytics.services.lifecycle_mcp.metrics import (
    decrement_inflight_fetches,
    increment_inflight_fetches,
    record_cache_lookup,
    record_metric_fetch,
    record_stale_result,
)
from analytics.services.lifecycle_mcp.orchestration.result_cache import ResultCache
from analytics.services.lifecycle_mcp.orchestration.sources import MetricRegistry
from lifecycle_attribution.foundation.errors import FetchError, FetchErrorKind
from lifecycle_attribution.foundation.query_key import QueryKey

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

# Lazy import to avoid circular dependency with the tool modules
_metrics_collector = None


def get_metrics_collector_instance():
    """Get metrics collector with lazy import to avoid circular dependencies.

    Prefer injecting one via DataOrchestrator(metrics_collector=...) in tests.
    """
    global _metrics_collector
    if _metrics_collector is None:
        from analytics.services.lifecycle_mcp.tools.execution_metrics import (
            get_metrics_collector,
        )

        _metrics_collector = get_metrics_collector()
    return _metrics_collector


class MetricStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ErrorInfo:
    """Serializable description of a failed fetch."""

    kind: str
    message: str
    status_code: int | None = None
    body: str | None = None

    @classmethod
    def from_fetch_error(cls, error: FetchError) -> "ErrorInfo":
        return cls(
            kind=error.kind.value,
            message=str(error),
            status_code=error.status_code,
            body=error.body,
        )


@dataclass(frozen=True)
class MetricResult:
    """Current state of one metric slot.

    ``key`` is the query key this result belongs to (None while idle).
    """

    status: MetricStatus
    data: Any = None
    error: ErrorInfo | None = None
    key: QueryKey | None = None

    @property
    def is_loading(self) -> bool:
        return self.status is MetricStatus.LOADING

    @property
    def is_error(self) -> bool:
        return self.status is MetricStatus.ERROR

    @property
    def is_success(self) -> bool:
        return self.status is MetricStatus.SUCCESS

    def as_dict(self, include_data: bool = True) -> dict[str, Any]:
        out: dict[str, Any] = {
            "status": self.status.value,
            "query_key": self.key.digest if self.key else None,
            "error": None,
        }
        if self.error is not None:
            out["error"] = {
                "kind": self.error.kind,
                "message": self.error.message,
                "status_code": self.error.status_code,
                "body": self.error.body,
            }
        if include_data:
            out["data"] = self.data
        else:
            out["record_count"] = len(self.data) if isinstance(self.data, list) else None
        return out


_IDLE = MetricResult(status=MetricStatus.IDLE)


class DataOrchestrator:
    """Binds every registered metric to the current query key.

    The result table (metric -> MetricResult) is owned and mutated only by
    this class; readers get snapshot copies.
    """

    def __init__(
        self,
        registry: MetricRegistry,
        cache: ResultCache | None = None,
        fetch_timeout_seconds: float | None = 30.0,
        metrics_collector=None,
    ):
        """Initialize the orchestrator with every slot idle.

        Args:
            registry: Metric fetch functions, one per slot
            cache: Result cache (a default bounded cache is created if None)
            fetch_timeout_seconds: Per-fetch deadline; None disables it
            metrics_collector: Optional MetricsCollector instance for testing.
                             If None, uses the lazy-loaded singleton instance.
        """
        self.registry = registry
        self.cache = cache if cache is not None else ResultCache()
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self._metrics_collector = metrics_collector

        self._slots: dict[str, MetricResult] = {name: _IDLE for name in registry}
        # The task whose result a slot is waiting for; None when not loading.
        self._expected: dict[str, asyncio.Task | None] = {name: None for name in registry}
        self._inflight: dict[tuple[str, QueryKey], asyncio.Task] = {}
        # Every running fetch, including superseded ones no longer in _inflight.
        self._tasks: set[asyncio.Task] = set()
        self._current_key: QueryKey | None = None

        logger.info(
            "data_orchestrator_initialized",
            metrics=registry.names(),
            fetch_timeout_seconds=fetch_timeout_seconds,
        )

    def _get_metrics_collector(self):
        if self._metrics_collector is not None:
            return self._metrics_collector
        return get_metrics_collector_instance()

    # -------- read access --------
    @property
    def current_key(self) -> QueryKey | None:
        return self._current_key

    @property
    def results(self) -> Mapping[str, MetricResult]:
        """Snapshot of every metric slot."""
        return dict(self._slots)

    def result(self, metric: str) -> MetricResult:
        try:
            return self._slots[metric]
        except KeyError:
            raise KeyError(f"Unknown metric {metric!r}") from None

    @property
    def is_loading(self) -> bool:
        return any(r.is_loading for r in self._slots.values())

    @property
    def is_error(self) -> bool:
        return any(r.is_error for r in self._slots.values())

    @property
    def inflight_count(self) -> int:
        return len(self._tasks)

    # -------- reconciliation --------
    def reconcile(self, key: QueryKey) -> None:
        """Re-resolve every registered metric against ``key``.

        Must be called on the event-loop thread. Slots already bound to
        ``key`` are left alone, so calling this with an unchanged key is a
        no-op.
        """
        self._current_key = key
        with tracer.start_as_current_span("reconcile_metrics") as span:
            span.set_attribute("query_key", key.short)
            started = 0
            for metric in self.registry:
                if self._reconcile_metric(metric, key):
                    started += 1
            span.set_attribute("fetches_started", started)

        logger.info(
            "metrics_reconciled",
            query_key=key.short,
            fetches_started=started,
            inflight=len(self._tasks),
        )

    def refresh(self, metrics: Iterable[str] | None = None) -> list[str]:
        """Manually re-fetch ``metrics`` (all by default) for the current key.

        Drops their cached entries first. Returns the refreshed metric names.
        """
        if self._current_key is None:
            raise RuntimeError("Nothing to refresh: no query key has been reconciled yet")
        names = list(metrics) if metrics is not None else self.registry.names()
        unknown = [m for m in names if m not in self.registry]
        if unknown:
            raise KeyError(f"Unknown metrics: {unknown}")

        key = self._current_key
        for metric in names:
            self.cache.invalidate(metric, key)
            self._slots[metric] = MetricResult(status=MetricStatus.LOADING, key=key)
            self._expected[metric] = self._start_fetch(metric, key)

        logger.info("metrics_refreshed", metrics=names, query_key=key.short)
        return names

    def _reconcile_metric(self, metric: str, key: QueryKey) -> bool:
        """Bind one slot to ``key``. Returns True if a new fetch was started."""
        slot = self._slots[metric]
        if slot.key == key and slot.status is not MetricStatus.IDLE:
            return False

        cached = self.cache.get(metric, key)
        record_cache_lookup(cached is not None)
        if cached is not None:
            self._slots[metric] = MetricResult(status=MetricStatus.SUCCESS, data=cached, key=key)
            self._expected[metric] = None
            return False

        self._slots[metric] = MetricResult(status=MetricStatus.LOADING, key=key)
        task = self._inflight.get((metric, key))
        if task is not None:
            logger.debug("fetch_already_inflight", metric=metric, query_key=key.short)
            self._expected[metric] = task
            return False

        self._expected[metric] = self._start_fetch(metric, key)
        return True

    def _start_fetch(self, metric: str, key: QueryKey) -> asyncio.Task:
        loop = asyncio.get_running_loop()
        task = loop.create_task(
            self._run_fetch(metric, key), name=f"fetch:{metric}:{key.short}"
        )
        self._inflight[(metric, key)] = task
        self._tasks.add(task)

        def _forget(done: asyncio.Task) -> None:
            self._tasks.discard(done)
            if self._inflight.get((metric, key)) is done:
                del self._inflight[(metric, key)]

        task.add_done_callback(_forget)
        logger.debug("fetch_started", metric=metric, query_key=key.short)
        return task

    async def _run_fetch(self, metric: str, key: QueryKey) -> None:
        fetch = self.registry.get(metric)
        start_time = time.perf_counter()
        data: Any = None
        error: FetchError | None = None

        increment_inflight_fetches()
        try:
            with tracer.start_as_current_span("metric_fetch") as span:
                span.set_attribute("metric", metric)
                span.set_attribute("query_key", key.short)
                try:
                    if self.fetch_timeout_seconds is None:
                        data = await fetch(key)
                    else:
                        data = await asyncio.wait_for(fetch(key), self.fetch_timeout_seconds)
                except asyncio.TimeoutError:
                    error = FetchError(
                        metric,
                        f"Fetch for {metric} exceeded {self.fetch_timeout_seconds}s",
                        kind=FetchErrorKind.TIMEOUT,
                    )
                except FetchError as e:
                    error = e
                except Exception as e:
                    error = FetchError(
                        metric,
                        f"{type(e).__name__}: {e}",
                        kind=FetchErrorKind.INTERNAL,
                    )
                span.set_attribute("success", error is None)
        finally:
            decrement_inflight_fetches()

        duration_ms = (time.perf_counter() - start_time) * 1000
        self._record_fetch_metrics(metric, duration_ms, error)
        self._commit(metric, key, data, error)

    def _commit(
        self, metric: str, key: QueryKey, data: Any, error: FetchError | None
    ) -> None:
        current = asyncio.current_task()
        if self._expected.get(metric) is not current or self._slots[metric].key != key:
            record_stale_result(metric)
            logger.info(
                "stale_result_discarded",
                metric=metric,
                query_key=key.short,
                expected_key=self._slots[metric].key.short if self._slots[metric].key else None,
            )
            return

        self._expected[metric] = None
        if error is not None:
            self._slots[metric] = MetricResult(
                status=MetricStatus.ERROR,
                error=ErrorInfo.from_fetch_error(error),
                key=key,
            )
            logger.warning(
                "metric_fetch_failed",
                metric=metric,
                query_key=key.short,
                error=str(error),
                error_kind=error.kind.value,
                status_code=error.status_code,
            )
            return

        self._slots[metric] = MetricResult(status=MetricStatus.SUCCESS, data=data, key=key)
        self.cache.set(metric, key, data)
        logger.info(
            "metric_fetch_committed",
            metric=metric,
            query_key=key.short,
            records=len(data) if isinstance(data, list) else None,
        )

    def _record_fetch_metrics(
        self, metric: str, duration_ms: float, error: FetchError | None
    ) -> None:
        """Centralized metrics recording for both custom collector and Prometheus."""
        try:
            self._get_metrics_collector().record_fetch(
                metric=metric,
                success=error is None,
                duration_ms=duration_ms,
                error_kind=error.kind.value if error is not None else None,
            )
            record_metric_fetch(metric, duration_ms / 1000.0, error is None)
        except Exception as e:
            logger.warning(
                "metrics_recording_failed",
                metric=metric,
                error=str(e),
                error_type=type(e).__name__,
            )

    # -------- lifecycle --------
    async def settle(self) -> None:
        """Wait until no fetch is in flight (including ones started meanwhile)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel in-flight fetches and drop all cached results."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()
        self._tasks.clear()
        self._expected = {name: None for name in self.registry}
        self.cache.clear()
        logger.info("data_orchestrator_closed", cancelled_fetches=len(tasks))
