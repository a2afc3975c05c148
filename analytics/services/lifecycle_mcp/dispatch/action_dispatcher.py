"""Action Dispatcher - hand activated cohorts to the execution platform

The dispatcher is the only boundary between the dashboard core and the
external tools that act on a cohort. It:
1. Validates the cohort against the tagged cohort models
2. Serializes a camelCase copy (the caller's cohort is never touched)
3. Forwards it to the configured sink
4. Reports ``DispatchResult(ok, error)`` with a classified error

Nothing is raised to the caller and nothing is retried automatically.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog
from opentelemetry import trace
from pydantic import ValidationError

from analytics.services.lifecycle_mcp.dispatch.sinks import CohortSink, LogSink
from analytics.services.lifecycle_mcp.metrics import record_cohort_dispatch
from lifecycle_attribution.cohorts import CohortBase, cohort_adapter
from lifecycle_attribution.foundation.errors import DispatchError, DispatchErrorKind

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(frozen=True)
class DispatchErrorInfo:
    kind: str
    message: str
    status_code: int | None = None


@dataclass(frozen=True)
class DispatchResult:
    ok: bool
    error: DispatchErrorInfo | None = None
    cohort_type: str | None = None
    dispatched_at: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "cohort_type": self.cohort_type,
            "dispatched_at": self.dispatched_at,
            "error": None
            if self.error is None
            else {
                "kind": self.error.kind,
                "message": self.error.message,
                "status_code": self.error.status_code,
            },
        }


class ActionDispatcher:
    """Forward cohorts to a sink and classify the outcome."""

    def __init__(self, sink: CohortSink | None = None):
        self.sink = sink if sink is not None else LogSink()
        self._pending: set[asyncio.Task] = set()

    async def dispatch(self, cohort: CohortBase | dict[str, Any]) -> DispatchResult:
        """Validate, serialize and deliver ``cohort``.

        Accepts either a cohort model or its camelCase payload.
        """
        try:
            validated = cohort_adapter.validate_python(cohort)
        except ValidationError as e:
            cohort_type = cohort.get("type") if isinstance(cohort, dict) else None
            logger.warning(
                "cohort_dispatch_invalid",
                cohort_type=cohort_type,
                errors=e.error_count(),
            )
            record_cohort_dispatch(str(cohort_type), DispatchErrorKind.VALIDATION.value)
            return DispatchResult(
                ok=False,
                error=DispatchErrorInfo(
                    kind=DispatchErrorKind.VALIDATION.value,
                    message=f"Invalid cohort: {e.error_count()} validation error(s)",
                ),
                cohort_type=cohort_type,
            )

        dispatched_at = datetime.now(timezone.utc).isoformat()
        body = {"cohort": validated.to_payload(), "dispatchedAt": dispatched_at}

        with tracer.start_as_current_span("cohort_dispatch") as span:
            span.set_attribute("cohort_type", validated.type)
            try:
                await self.sink.send(body)
            except DispatchError as e:
                error = DispatchErrorInfo(e.kind.value, str(e), e.status_code)
            except Exception as e:
                error = DispatchErrorInfo(
                    DispatchErrorKind.NETWORK.value, f"{type(e).__name__}: {e}"
                )
            else:
                error = None
            span.set_attribute("success", error is None)

        if error is not None:
            logger.warning(
                "cohort_dispatch_failed",
                cohort_type=validated.type,
                error_kind=error.kind,
                error=error.message,
                status_code=error.status_code,
            )
            record_cohort_dispatch(validated.type, error.kind)
            return DispatchResult(
                ok=False,
                error=error,
                cohort_type=validated.type,
                dispatched_at=dispatched_at,
            )

        logger.info(
            "cohort_dispatched",
            cohort_type=validated.type,
            description=validated.description,
        )
        record_cohort_dispatch(validated.type, "ok")
        return DispatchResult(ok=True, cohort_type=validated.type, dispatched_at=dispatched_at)

    def submit(
        self,
        cohort: CohortBase | dict[str, Any],
        callback: Callable[[DispatchResult], None] | None = None,
    ) -> asyncio.Task:
        """Fire-and-forget :meth:`dispatch`; ``callback`` receives the result."""
        task = asyncio.get_running_loop().create_task(self.dispatch(cohort))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        if callback is not None:

            def _deliver(done: asyncio.Task) -> None:
                if not done.cancelled():
                    callback(done.result())

            task.add_done_callback(_deliver)
        return task

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def close(self) -> None:
        """Wait for submitted dispatches to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
