"""Cohort sinks: where activated cohorts are delivered.

A sink receives the serialized dispatch body
``{"cohort": {...camelCase...}, "dispatchedAt": "<iso timestamp>"}`` and
either accepts it or raises :class:`DispatchError` with a classification.

- WebhookSink: JSON POST to an external activation endpoint (ad platform,
  email tool, CRM bridge) with requests, guarded by the ``action_sink``
  circuit breaker
- LogSink: development fallback that logs the cohort and accepts it
"""

import asyncio
from typing import Any, Protocol

import requests
import structlog
from pybreaker import CircuitBreakerError

from analytics.services.lifecycle_mcp.config import DashboardSettings
from analytics.services.lifecycle_mcp.resilience import (
    ACTION_SINK_BREAKER,
    get_circuit_breaker,
)
from lifecycle_attribution.foundation.errors import DispatchError, DispatchErrorKind

logger = structlog.get_logger(__name__)


class CohortSink(Protocol):
    async def send(self, body: dict[str, Any]) -> None: ...


class WebhookSink:
    """POST dispatch bodies to an HTTP endpoint.

    Non-2xx responses are reported as ``external_rejection``; connection
    failures, timeouts and an open circuit as ``network``.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._breaker = get_circuit_breaker(ACTION_SINK_BREAKER)

    async def send(self, body: dict[str, Any]) -> None:
        await asyncio.to_thread(self._post, body)

    def _post(self, body: dict[str, Any]) -> None:
        try:
            response = self._breaker.call(
                self._session.post, self.url, json=body, timeout=self.timeout_seconds
            )
        except CircuitBreakerError as e:
            raise DispatchError(
                f"Action sink unavailable (circuit open): {e}",
                kind=DispatchErrorKind.NETWORK,
            ) from e
        except requests.RequestException as e:
            raise DispatchError(
                f"Network error dispatching cohort: {e}",
                kind=DispatchErrorKind.NETWORK,
            ) from e

        if not response.ok:
            raise DispatchError(
                f"Action sink rejected cohort: HTTP {response.status_code}",
                kind=DispatchErrorKind.EXTERNAL_REJECTION,
                status_code=response.status_code,
            )


class LogSink:
    """Accept every cohort and log it. Nothing is retained."""

    async def send(self, body: dict[str, Any]) -> None:
        cohort = body.get("cohort", {})
        logger.info(
            "cohort_logged",
            cohort_type=cohort.get("type"),
            description=cohort.get("description"),
            dispatched_at=body.get("dispatchedAt"),
        )


def build_sink(settings: DashboardSettings) -> CohortSink:
    """Webhook sink when ``action_sink_url`` is configured, log sink otherwise."""
    if settings.action_sink_url:
        logger.info("action_sink_configured", mode="webhook", url=settings.action_sink_url)
        return WebhookSink(settings.action_sink_url, settings.action_sink_timeout_seconds)
    logger.info("action_sink_configured", mode="log")
    return LogSink()
