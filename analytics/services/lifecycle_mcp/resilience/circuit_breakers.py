"""Circuit breakers for the two outbound dependencies of the dashboard.

- ``metric_api``: shared by every ``HttpMetricSource``; once open, each metric
  of the next filter change fails immediately with ``kind="unavailable"``
- ``action_sink``: the cohort activation webhook; once open, dispatches are
  reported as ``network`` failures

Open breakers are never a reason to retry. They only shorten the time a dead
backend keeps worker threads busy, and they show up in ``health_check`` and the
``circuit_breaker_state`` Prometheus gauge.
"""

from typing import Any

import structlog
from pybreaker import CircuitBreaker, CircuitBreakerListener

from analytics.services.lifecycle_mcp.metrics import update_circuit_breaker_state

logger = structlog.get_logger(__name__)

METRIC_API_BREAKER = "metric_api"
ACTION_SINK_BREAKER = "action_sink"

# (fail_max, reset_timeout seconds) per dependency
BREAKER_DEFAULTS: dict[str, tuple[int, int]] = {
    METRIC_API_BREAKER: (5, 60),
    ACTION_SINK_BREAKER: (5, 30),
}
_FALLBACK_DEFAULTS = (5, 60)

_circuit_breakers: dict[str, CircuitBreaker] = {}


def get_circuit_breaker(
    name: str,
    fail_max: int | None = None,
    reset_timeout: int | None = None,
) -> CircuitBreaker:
    """Return the breaker registered under ``name``, creating it on first use.

    ``fail_max`` and ``reset_timeout`` only apply at creation and default to
    the ``BREAKER_DEFAULTS`` entry for ``name``.
    """
    breaker = _circuit_breakers.get(name)
    if breaker is not None:
        return breaker

    default_fail_max, default_reset = BREAKER_DEFAULTS.get(name, _FALLBACK_DEFAULTS)
    breaker = CircuitBreaker(
        fail_max=fail_max if fail_max is not None else default_fail_max,
        reset_timeout=reset_timeout if reset_timeout is not None else default_reset,
        name=name,
        listeners=[_DependencyListener(name)],
    )
    _circuit_breakers[name] = breaker
    logger.info(
        "creating_circuit_breaker",
        name=name,
        fail_max=breaker.fail_max,
        reset_timeout=breaker.reset_timeout,
    )
    return breaker


class _DependencyListener(CircuitBreakerListener):
    """Logs failures and mirrors state transitions into Prometheus."""

    def __init__(self, name: str):
        self.name = name

    def failure(self, cb: CircuitBreaker, exc: BaseException):
        logger.warning(
            "dependency_call_failed",
            dependency=self.name,
            fail_count=cb.fail_counter,
            fail_max=cb.fail_max,
            error_type=type(exc).__name__,
            error=str(exc),
        )

    def state_change(self, cb: CircuitBreaker, old_state, new_state):
        new_name = getattr(new_state, "name", str(new_state))
        logger.warning(
            "circuit_breaker_state_change",
            dependency=self.name,
            old_state=getattr(old_state, "name", None),
            new_state=new_name,
        )
        update_circuit_breaker_state(self.name, new_name)


def get_circuit_breaker_status() -> dict[str, dict[str, Any]]:
    """State of every registered breaker, keyed by dependency name."""
    return {
        name: {
            "state": str(breaker.current_state).lower(),
            "fail_count": breaker.fail_counter,
            "fail_max": breaker.fail_max,
            "reset_timeout": breaker.reset_timeout,
        }
        for name, breaker in _circuit_breakers.items()
    }


def reset_all_circuit_breakers():
    """Close every breaker (tests, or after an API outage has been resolved)."""
    logger.info("resetting_all_circuit_breakers", count=len(_circuit_breakers))
    for breaker in _circuit_breakers.values():
        breaker.close()
