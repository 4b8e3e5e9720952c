"""Utility methods used by multiple components.

The most important function here is `instant_key`. Exceptions are joined to
generated occurrences by plain string equality on their original time, so
every place that turns an instant into a key must go through it.
"""

from __future__ import annotations

import datetime
from typing import Any, overload
import uuid

__all__ = [
    "dtstamp_factory",
    "uid_factory",
    "normalize_instant",
    "instant_key",
]


MIDNIGHT = datetime.time()


def dtstamp_factory() -> datetime.datetime:
    """Factory method for new timestamps to facilitate mocking."""
    return datetime.datetime.now(tz=datetime.UTC)


def uid_factory() -> str:
    """Factory method for new ids to facilitate mocking."""
    return str(uuid.uuid4())


def normalize_instant(value: Any) -> datetime.datetime:
    """Convert a date, datetime or ISO 8601 string to an aware UTC datetime.

    Naive values are interpreted as UTC. A plain date is midnight UTC.
    Raises ValueError when the value can't be interpreted as an instant.
    """
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Expected an ISO 8601 instant, got an empty string")
        try:
            value = datetime.datetime.fromisoformat(text)
        except ValueError as err:
            raise ValueError(f"Unable to parse instant: {value!r}") from err
    if not isinstance(value, datetime.datetime):
        if not isinstance(value, datetime.date):
            raise ValueError(f"Unable to interpret {value!r} as an instant")
        value = datetime.datetime.combine(value, MIDNIGHT)
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=datetime.UTC)
    return value.astimezone(datetime.UTC)


@overload
def parse_optional_instant(value: None) -> None: ...


@overload
def parse_optional_instant(value: Any) -> datetime.datetime | None: ...


def parse_optional_instant(value: Any) -> datetime.datetime | None:
    """Coerce a model field into a UTC instant, preserving empty values."""
    if value is None or value == "":
        return None
    return normalize_instant(value)


def instant_key(value: Any) -> str:
    """Return the canonical UTC string for an instant.

    The format is `YYYY-MM-DDTHH:MM:SS.sssZ` with millisecond precision, the
    same text produced by javascript `Date.toISOString()`, which is how
    occurrence times are commonly stored. Sub-millisecond precision is
    truncated so that a regenerated occurrence and a stored exception agree.
    """
    instant = normalize_instant(value)
    millis = instant.microsecond // 1000
    return f"{instant:%Y-%m-%dT%H:%M:%S}.{millis:03d}Z"
