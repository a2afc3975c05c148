"""Tests for cohort dispatch and the activation sinks."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest
import requests
from conftest import RecordingSink

from analytics.services.lifecycle_mcp.config import DashboardSettings
from analytics.services.lifecycle_mcp.dispatch import (
    ActionDispatcher,
    DispatchErrorInfo,
    DispatchResult,
    LogSink,
    WebhookSink,
    build_sink,
)
from lifecycle_attribution.cohorts import build_cohort
from lifecycle_attribution.foundation.errors import DispatchError, DispatchErrorKind


@pytest.fixture
def cohort():
    return build_cohort(
        "holdout_lift",
        {"campaign": "Black Friday Email", "exposedRevenue": 45000, "holdoutRevenue": 32000, "lift": 40.6},
    )


class RejectingSink:
    def __init__(self, exc):
        self.exc = exc

    async def send(self, body):
        raise self.exc


def _webhook(response=None, side_effect=None):
    session = MagicMock(spec=requests.Session)
    if side_effect is not None:
        session.post.side_effect = side_effect
    else:
        session.post.return_value = response
    return WebhookSink("https://activation.example.com/cohorts", 3, session=session), session


def _response(status_code):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    return response


class TestDispatch:
    @pytest.mark.asyncio
    async def test_successful_dispatch(self, cohort):
        sink = RecordingSink()
        result = await ActionDispatcher(sink).dispatch(cohort)

        assert result.ok is True
        assert result.error is None
        assert result.cohort_type == "holdout_campaign"

        body = sink.sent[0]
        assert body["cohort"]["incrementalRevenue"] == 13000
        assert body["cohort"]["description"] == "Black Friday Email holdout test cohort"
        datetime.fromisoformat(body["dispatchedAt"])

    @pytest.mark.asyncio
    async def test_dispatch_does_not_mutate_cohort(self, cohort):
        before = cohort.to_payload()
        sink = RecordingSink()
        await ActionDispatcher(sink).dispatch(cohort)
        sink.sent[0]["cohort"]["campaign"] = "changed downstream"
        assert cohort.to_payload() == before

    @pytest.mark.asyncio
    async def test_serialized_payload_is_accepted(self, cohort):
        result = await ActionDispatcher(LogSink()).dispatch(cohort.to_payload())
        assert result.ok is True

    @pytest.mark.asyncio
    async def test_invalid_cohort_is_a_validation_error(self):
        sink = RecordingSink()
        dispatcher = ActionDispatcher(sink)

        unknown = await dispatcher.dispatch({"type": "mystery", "description": "?"})
        missing = await dispatcher.dispatch({"type": "journey_path", "description": "x", "source": "Meta"})

        for result in (unknown, missing):
            assert result.ok is False
            assert result.error.kind == "validation"
        assert sink.sent == []

    @pytest.mark.asyncio
    async def test_sink_rejection_is_reported_not_raised(self, cohort):
        sink = RejectingSink(
            DispatchError("rejected", kind=DispatchErrorKind.EXTERNAL_REJECTION, status_code=422)
        )
        result = await ActionDispatcher(sink).dispatch(cohort)

        assert result.ok is False
        assert result.error.kind == "external_rejection"
        assert result.error.status_code == 422

    @pytest.mark.asyncio
    async def test_unexpected_sink_failure_is_network(self, cohort):
        result = await ActionDispatcher(RejectingSink(OSError("socket closed"))).dispatch(cohort)
        assert result.ok is False
        assert result.error.kind == "network"

    @pytest.mark.asyncio
    async def test_submit_invokes_callback(self, cohort):
        results = []
        dispatcher = ActionDispatcher(LogSink())

        task = dispatcher.submit(cohort, callback=results.append)
        await task
        await dispatcher.close()

        assert len(results) == 1
        assert results[0].ok is True
        assert dispatcher.pending_count == 0

    def test_result_as_dict(self):
        result = DispatchResult(ok=False, error=DispatchErrorInfo("network", "down"))
        assert result.as_dict()["error"] == {"kind": "network", "message": "down", "status_code": None}


class TestWebhookSink:
    @pytest.mark.asyncio
    async def test_posts_json_body(self, cohort):
        sink, session = _webhook(_response(202))
        result = await ActionDispatcher(sink).dispatch(cohort)

        assert result.ok is True
        args, kwargs = session.post.call_args
        assert args == ("https://activation.example.com/cohorts",)
        assert kwargs["timeout"] == 3
        assert kwargs["json"]["cohort"]["type"] == "holdout_campaign"
        assert "dispatchedAt" in kwargs["json"]

    @pytest.mark.asyncio
    async def test_http_error_is_external_rejection(self, cohort):
        sink, _ = _webhook(_response(400))
        result = await ActionDispatcher(sink).dispatch(cohort)
        assert result.error.kind == "external_rejection"
        assert result.error.status_code == 400

    @pytest.mark.asyncio
    async def test_connection_error_is_network(self, cohort):
        sink, _ = _webhook(side_effect=requests.ConnectionError("refused"))
        result = await ActionDispatcher(sink).dispatch(cohort)
        assert result.error.kind == "network"

    @pytest.mark.asyncio
    async def test_open_circuit_is_network(self, cohort):
        sink, session = _webhook(side_effect=requests.ConnectionError("refused"))
        dispatcher = ActionDispatcher(sink)
        for _ in range(5):
            await dispatcher.dispatch(cohort)

        result = await dispatcher.dispatch(cohort)

        assert result.error.kind == "network"
        assert "circuit open" in result.error.message
        assert session.post.call_count == 5


def test_build_sink_selects_by_settings():
    assert isinstance(build_sink(DashboardSettings()), LogSink)
    webhook = build_sink(DashboardSettings(action_sink_url="https://activation.example.com/hook"))
    assert isinstance(webhook, WebhookSink)
    assert webhook.url == "https://activation.example.com/hook"


@pytest.mark.asyncio
async def test_log_sink_keeps_no_history(cohort):
    sink = LogSink()
    dispatcher = ActionDispatcher(sink)

    for _ in range(50):
        result = await dispatcher.dispatch(cohort)
        assert result.ok is True

    assert vars(sink) == {}
