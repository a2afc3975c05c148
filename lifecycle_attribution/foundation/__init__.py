"""Foundational building blocks for the lifecycle dashboard core.

This package exposes the shared filter context, the query keys derived
from it and the error taxonomy used across the fetch, cohort and dispatch
layers.
"""

from .errors import (
    DispatchError,
    DispatchErrorKind,
    FetchError,
    FetchErrorKind,
    InvalidRangeError,
    LifecycleDashboardError,
    MalformedPayloadError,
    UnknownChannelError,
    UnknownSegmentError,
)
from .filters import (
    AVAILABLE_CHANNELS,
    AVAILABLE_SEGMENTS,
    DEFAULT_SEGMENT,
    DateRange,
    FilterSnapshot,
    FilterState,
    default_snapshot,
)
from .query_key import QueryKey, derive_query_key

__all__ = [
    "AVAILABLE_CHANNELS",
    "AVAILABLE_SEGMENTS",
    "DEFAULT_SEGMENT",
    "DateRange",
    "DispatchError",
    "DispatchErrorKind",
    "FetchError",
    "FetchErrorKind",
    "FilterSnapshot",
    "FilterState",
    "InvalidRangeError",
    "LifecycleDashboardError",
    "MalformedPayloadError",
    "QueryKey",
    "UnknownChannelError",
    "UnknownSegmentError",
    "default_snapshot",
    "derive_query_key",
]
