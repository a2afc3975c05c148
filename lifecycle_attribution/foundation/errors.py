"""Error taxonomy shared by the filter, fetch, cohort and dispatch layers.

Validation errors (:class:`InvalidRangeError`, :class:`UnknownSegmentError`,
:class:`UnknownChannelError`) are raised synchronously by filter mutations and
leave the filter state untouched. :class:`FetchError` is stored in a single
metric slot and never propagates to sibling metrics. :class:`MalformedPayloadError`
and :class:`DispatchError` are converted into ``None`` / result objects by the
cohort builders and the action dispatcher respectively.
"""

from __future__ import annotations

from enum import Enum


class LifecycleDashboardError(Exception):
    """Base class for all dashboard core errors."""


class InvalidRangeError(LifecycleDashboardError, ValueError):
    """Raised when a date range has its start after its end."""


class UnknownSegmentError(LifecycleDashboardError, ValueError):
    """Raised when a segment is not part of the segment catalog."""


class UnknownChannelError(LifecycleDashboardError, ValueError):
    """Raised when a channel is not part of the channel catalog."""


class FetchErrorKind(str, Enum):
    HTTP = "http"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"
    INTERNAL = "internal"


class FetchError(LifecycleDashboardError):
    """A single metric fetch failed.

    Attributes
    ----------
    metric:
        Registry name of the metric whose fetch failed.
    kind:
        Coarse classification of the failure.
    status_code:
        HTTP status code for non-2xx responses, otherwise ``None``.
    body:
        Response body (truncated) for non-2xx responses, otherwise ``None``.
    """

    def __init__(
        self,
        metric: str,
        message: str,
        *,
        kind: FetchErrorKind = FetchErrorKind.INTERNAL,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.metric = metric
        self.kind = FetchErrorKind(kind)
        self.status_code = status_code
        self.body = body


class MalformedPayloadError(LifecycleDashboardError):
    """An interaction payload lacks the fields its cohort type requires."""


class DispatchErrorKind(str, Enum):
    NETWORK = "network"
    VALIDATION = "validation"
    EXTERNAL_REJECTION = "external_rejection"


class DispatchError(LifecycleDashboardError):
    """Delivering a cohort to the external sink failed."""

    def __init__(
        self,
        message: str,
        *,
        kind: DispatchErrorKind,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = DispatchErrorKind(kind)
        self.status_code = status_code
