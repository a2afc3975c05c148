"""Cohort dispatch to external activation sinks."""

from analytics.services.lifecycle_mcp.dispatch.action_dispatcher import (
    ActionDispatcher,
    DispatchErrorInfo,
    DispatchResult,
)
from analytics.services.lifecycle_mcp.dispatch.sinks import (
    CohortSink,
    LogSink,
    WebhookSink,
    build_sink,
)

__all__ = [
    "ActionDispatcher",
    "CohortSink",
    "DispatchErrorInfo",
    "DispatchResult",
    "LogSink",
    "WebhookSink",
    "build_sink",
]
