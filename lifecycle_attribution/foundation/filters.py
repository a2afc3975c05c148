"""Shared filter context for the lifecycle dashboard.

:class:`FilterState` is the single, explicitly owned record of the date
range, channel selection and customer segment every metric is scoped to. It
is only changed through its named mutation operations; each successful
mutation recomputes the :class:`~lifecycle_attribution.foundation.query_key.QueryKey`
and notifies the registered listeners synchronously.

Quick Start
-----------
>>> from datetime import date
>>> state = FilterState(today=date(2024, 3, 31))
>>> state.date_range
DateRange(start=datetime.date(2024, 3, 1), end=datetime.date(2024, 3, 31))
>>> state.toggle_channel("Meta")
>>> state.has_active_filters
True
>>> state.reset_filters()
>>> state.has_active_filters
False
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable

from lifecycle_attribution.foundation.errors import (
    InvalidRangeError,
    UnknownChannelError,
    UnknownSegmentError,
)
from lifecycle_attribution.foundation.query_key import QueryKey, derive_query_key

logger = logging.getLogger(__name__)

AVAILABLE_CHANNELS: tuple[str, ...] = (
    "Google Ads",
    "Meta",
    "Email",
    "Organic",
    "TikTok",
    "Influencers",
)

AVAILABLE_SEGMENTS: tuple[str, ...] = (
    "All",
    "New Customers",
    "Returning Customers",
    "High Value",
    "At Risk",
)

DEFAULT_SEGMENT = "All"
DEFAULT_LOOKBACK_DAYS = 30

FilterListener = Callable[["FilterState", QueryKey], None]


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range with ``start <= end``."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise InvalidRangeError(
                f"start must be on or before end: "
                f"start={self.start.isoformat()}, end={self.end.isoformat()}"
            )

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


@dataclass(frozen=True)
class FilterSnapshot:
    """Immutable copy of a filter state, used for defaults and read access."""

    date_range: DateRange
    selected_channels: frozenset[str]
    selected_segment: str

    def as_dict(self) -> dict[str, object]:
        return {
            "start_date": self.date_range.start.isoformat(),
            "end_date": self.date_range.end.isoformat(),
            "selected_channels": [
                c for c in AVAILABLE_CHANNELS if c in self.selected_channels
            ],
            "selected_segment": self.selected_segment,
        }


def default_snapshot(
    today: date | None = None, lookback_days: int = DEFAULT_LOOKBACK_DAYS
) -> FilterSnapshot:
    """Build the session-default filters: last ``lookback_days``, all channels, ``All``."""
    end = today or date.today()
    return FilterSnapshot(
        date_range=DateRange(end - timedelta(days=lookback_days), end),
        selected_channels=frozenset(AVAILABLE_CHANNELS),
        selected_segment=DEFAULT_SEGMENT,
    )


class FilterState:
    """Mutable filter context owned by one dashboard session.

    Parameters
    ----------
    today:
        Reference day for the default date range. Defaults to
        :func:`datetime.date.today`. The defaults are captured once, so
        :meth:`reset_filters` restores exactly the state the session
        started with.
    lookback_days:
        Length of the default date range.

    Notes
    -----
    Mutations apply before listeners run. Every listener is notified even if
    an earlier one raises; the first listener error is then re-raised with the
    new state in place. A session listener reconciles on the running event
    loop, so mutations of a subscribed state belong on that loop.
    """

    def __init__(
        self,
        today: date | None = None,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    ) -> None:
        self._defaults = default_snapshot(today, lookback_days)
        self._date_range = self._defaults.date_range
        self._channels: frozenset[str] = self._defaults.selected_channels
        self._segment = self._defaults.selected_segment
        self._listeners: list[FilterListener] = []
        self._key = derive_query_key(self)

    # -------- read access --------
    @property
    def date_range(self) -> DateRange:
        return self._date_range

    @property
    def selected_channels(self) -> frozenset[str]:
        return self._channels

    @property
    def selected_segment(self) -> str:
        return self._segment

    @property
    def available_channels(self) -> tuple[str, ...]:
        return AVAILABLE_CHANNELS

    @property
    def available_segments(self) -> tuple[str, ...]:
        return AVAILABLE_SEGMENTS

    @property
    def defaults(self) -> FilterSnapshot:
        return self._defaults

    @property
    def has_active_filters(self) -> bool:
        return (
            self._channels != frozenset(AVAILABLE_CHANNELS)
            or self._segment != DEFAULT_SEGMENT
        )

    @property
    def query_key(self) -> QueryKey:
        return self._key

    def snapshot(self) -> FilterSnapshot:
        return FilterSnapshot(self._date_range, self._channels, self._segment)

    # -------- listeners --------
    def subscribe(self, listener: FilterListener) -> Callable[[], None]:
        """Register ``listener`` to run after every mutation; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------- mutations --------
    def update_date_range(self, start: date, end: date) -> None:
        # DateRange validates, so a rejected range never touches the state.
        new_range = DateRange(start, end)
        self._date_range = new_range
        self._changed("update_date_range")

    def toggle_channel(self, channel: str) -> None:
        if channel not in AVAILABLE_CHANNELS:
            raise UnknownChannelError(
                f"Unknown channel {channel!r}. Expected one of {list(AVAILABLE_CHANNELS)}"
            )
        if channel in self._channels:
            self._channels = self._channels - {channel}
        else:
            self._channels = self._channels | {channel}
        self._changed("toggle_channel")

    def select_all_channels(self) -> None:
        self._channels = frozenset(AVAILABLE_CHANNELS)
        self._changed("select_all_channels")

    def clear_channels(self) -> None:
        self._channels = frozenset()
        self._changed("clear_channels")

    def update_segment(self, segment: str) -> None:
        if segment not in AVAILABLE_SEGMENTS:
            raise UnknownSegmentError(
                f"Unknown segment {segment!r}. Expected one of {list(AVAILABLE_SEGMENTS)}"
            )
        self._segment = segment
        self._changed("update_segment")

    def reset_filters(self) -> None:
        self._date_range = self._defaults.date_range
        self._channels = self._defaults.selected_channels
        self._segment = self._defaults.selected_segment
        self._changed("reset_filters")

    def _changed(self, operation: str) -> None:
        self._key = derive_query_key(self)
        logger.debug(
            "Filter mutation %s -> key %s (%d channels, segment=%s)",
            operation,
            self._key.short,
            len(self._channels),
            self._segment,
        )
        failure: Exception | None = None
        for listener in list(self._listeners):
            try:
                listener(self, self._key)
            except Exception as exc:
                logger.exception("Filter listener failed after %s", operation)
                if failure is None:
                    failure = exc
        if failure is not None:
            raise failure
