"""Deterministic query keys derived from filter state.

A :class:`QueryKey` identifies the slice of data every metric fetch is scoped
to. Two filter states with the same content always derive the same key, no
matter in which order channels were toggled, so keys can be compared and
used as cache keys directly.

>>> from datetime import date
>>> a = QueryKey.from_parts(date(2024, 1, 1), date(2024, 1, 31), ["Meta", "Email"], "All")
>>> b = QueryKey.from_parts(date(2024, 1, 1), date(2024, 1, 31), ["Email", "Meta"], "All")
>>> a == b
True
>>> a.to_params()["channels"]
'Email,Meta'
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from lifecycle_attribution.foundation.filters import FilterState

DATE_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class QueryKey:
    """Canonical, hashable fingerprint of the filter parameters.

    Attributes
    ----------
    start:
        Inclusive first day of the date range.
    end:
        Inclusive last day of the date range.
    channels:
        Selected channels, sorted and de-duplicated.
    segment:
        Selected customer segment.
    """

    start: date
    end: date
    channels: tuple[str, ...]
    segment: str

    @classmethod
    def from_parts(
        cls, start: date, end: date, channels: Iterable[str], segment: str
    ) -> QueryKey:
        return cls(
            start=start,
            end=end,
            channels=tuple(sorted(set(channels))),
            segment=segment,
        )

    def canonical(self) -> str:
        """Return the canonical JSON serialization hashed by :attr:`digest`."""
        return json.dumps(
            {
                "start": self.start.isoformat(),
                "end": self.end.isoformat(),
                "channels": list(self.channels),
                "segment": self.segment,
            },
            sort_keys=True,
            separators=(",", ":"),
        )

    @property
    def digest(self) -> str:
        """SHA-256 hex digest of the canonical serialization."""
        return hashlib.sha256(self.canonical().encode()).hexdigest()

    @property
    def short(self) -> str:
        return self.digest[:12]

    def to_params(self) -> dict[str, str]:
        """Render the query-string parameters of the lifecycle fetch contract."""
        return {
            "startDate": self.start.strftime(DATE_FORMAT),
            "endDate": self.end.strftime(DATE_FORMAT),
            "channels": ",".join(self.channels),
            "segment": self.segment,
        }


def derive_query_key(state: FilterState) -> QueryKey:
    """Derive the query key for ``state``.

    Pure function of ``(start, end, channels, segment)``.
    """
    return QueryKey.from_parts(
        state.date_range.start,
        state.date_range.end,
        state.selected_channels,
        state.selected_segment,
    )
