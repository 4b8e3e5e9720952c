"""A timespan is defined by a start and end time and used for comparisons.

Timespans are always aligned to UTC so that occurrences of tasks anchored
to different timezones compare correctly.
"""

from __future__ import annotations

import datetime
from typing import Any

from .util import normalize_instant

__all__ = ["Timespan"]


class Timespan:
    """An unambiguous, half-open definition of a start and end time."""

    def __init__(self, start: datetime.datetime, end: datetime.datetime) -> None:
        """Initialize Timespan."""
        if not start.tzinfo or not end.tzinfo:
            raise ValueError(f"Timespan requires timezone aware values: {start}, {end}")
        if end < start:
            raise ValueError(f"Timespan end {end} is before start {start}")
        self._start = start
        self._end = end

    @classmethod
    def of(  # pylint: disable=invalid-name
        cls,
        start: Any,
        end: Any,
    ) -> Timespan:
        """Create a Timespan from any values that can be read as instants."""
        return Timespan(normalize_instant(start), normalize_instant(end))

    @property
    def start(self) -> datetime.datetime:
        """Return the timespan start as a datetime."""
        return self._start

    @property
    def end(self) -> datetime.datetime:
        """Return the timespan end as a datetime."""
        return self._end

    @property
    def duration(self) -> datetime.timedelta:
        """Return the timespan duration."""
        return self.end - self.start

    def starts_within(self, other: Timespan) -> bool:
        """Return True if this timespan starts while the other timespan is active."""
        return other.start <= self.start < other.end

    def intersects(self, other: Timespan) -> bool:
        """Return True if this timespan overlaps with the other timespan."""
        if self.start == self.end:
            return self.starts_within(other)
        return self.start < other.end and other.start < self.end

    def is_included_in(self, other: Timespan) -> bool:
        """Return True if this timespan starts and ends within the other timespan."""
        return other.start <= self.start and self.end <= other.end

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, Timespan):
            return NotImplemented
        return (self._start, self._end) < (other.start, other.end)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Timespan):
            return NotImplemented
        return (self._start, self._end) == (other.start, other.end)

    def __hash__(self) -> int:
        return hash((self._start, self._end))

    def __repr__(self) -> str:
        return f"Timespan({self._start.isoformat()}, {self._end.isoformat()})"
