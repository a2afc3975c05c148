"""Shared fixtures for the dashboard service tests."""

import asyncio
from datetime import date

import pytest

from analytics.services.lifecycle_mcp.resilience import reset_all_circuit_breakers
from analytics.services.lifecycle_mcp.tools.execution_metrics import MetricsCollector
from lifecycle_attribution.foundation import AVAILABLE_CHANNELS, QueryKey


class ControlledSource:
    """Metric fetch function whose responses are released by the test.

    Every call parks on a future; resolve()/fail() complete the oldest
    pending call for a key.
    """

    def __init__(self):
        self.calls: list[QueryKey] = []
        self._pending: dict[QueryKey, list[asyncio.Future]] = {}

    async def __call__(self, key: QueryKey):
        self.calls.append(key)
        future = asyncio.get_running_loop().create_future()
        self._pending.setdefault(key, []).append(future)
        return await future

    def pending(self, key: QueryKey) -> int:
        return len([f for f in self._pending.get(key, []) if not f.done()])

    def resolve(self, key: QueryKey, data):
        self._next(key).set_result(data)

    def fail(self, key: QueryKey, exc: BaseException):
        self._next(key).set_exception(exc)

    def _next(self, key: QueryKey) -> asyncio.Future:
        for future in self._pending.get(key, []):
            if not future.done():
                return future
        raise AssertionError(f"No pending fetch for {key.short}")


async def spin(iterations: int = 10):
    """Let scheduled tasks run for a few event-loop iterations."""
    for _ in range(iterations):
        await asyncio.sleep(0)


def make_key(segment: str = "All", channels=AVAILABLE_CHANNELS) -> QueryKey:
    return QueryKey.from_parts(date(2024, 3, 1), date(2024, 3, 31), channels, segment)


class RecordingSink:
    """Cohort sink that keeps every delivered body for assertions."""

    def __init__(self):
        self.sent = []

    async def send(self, body):
        self.sent.append(body)


class MockContext:
    """Mock FastMCP Context for testing."""

    def __init__(self):
        self.messages = []
        self.progress_reports = []

    async def info(self, message: str):
        self.messages.append(("info", message))

    async def report_progress(self, progress: float, message: str | None = None):
        self.progress_reports.append((progress, message))


@pytest.fixture(autouse=True)
def closed_circuit_breakers():
    """Start every test with all circuit breakers closed."""
    reset_all_circuit_breakers()
    yield
    reset_all_circuit_breakers()


@pytest.fixture
def collector():
    return MetricsCollector()


@pytest.fixture
def mock_ctx():
    return MockContext()
