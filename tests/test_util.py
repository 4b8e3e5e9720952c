"""Tests for instant normalization."""

import datetime
import zoneinfo

import pytest

from taskcal.util import instant_key, normalize_instant

UTC = datetime.UTC


@pytest.mark.parametrize(
    "value",
    [
        "2024-01-08T09:00:00Z",
        "2024-01-08T09:00:00.000Z",
        "2024-01-08T09:00:00+00:00",
        "2024-01-08T09:00:00.000+00:00",
        "2024-01-08T04:00:00-05:00",
        "2024-01-08T10:00:00+01:00",
        "2024-01-08 09:00:00",
        "2024-01-08T09:00:00",
        datetime.datetime(2024, 1, 8, 9, 0, 0, tzinfo=UTC),
        datetime.datetime(2024, 1, 8, 9, 0, 0, 999, tzinfo=UTC),
        datetime.datetime(2024, 1, 8, 9, 0, 0),
        datetime.datetime(
            2024, 1, 8, 4, 0, 0, tzinfo=zoneinfo.ZoneInfo("America/New_York")
        ),
    ],
)
def test_instant_key_agrees(value: str | datetime.datetime) -> None:
    """Test that every spelling of the same instant has the same key."""
    assert instant_key(value) == "2024-01-08T09:00:00.000Z"


def test_instant_key_millis() -> None:
    """Test sub-millisecond precision is truncated, not rounded."""
    value = datetime.datetime(2024, 1, 8, 9, 0, 0, 123999, tzinfo=UTC)
    assert instant_key(value) == "2024-01-08T09:00:00.123Z"
    assert instant_key("2024-01-08T09:00:00.123456Z") == "2024-01-08T09:00:00.123Z"


def test_normalize_instant() -> None:
    """Test values are converted to aware UTC datetimes."""
    assert normalize_instant("2024-01-08T04:00:00-05:00") == datetime.datetime(
        2024, 1, 8, 9, 0, 0, tzinfo=UTC
    )
    assert normalize_instant("2024-01-08T04:00:00-05:00").tzinfo == UTC
    assert normalize_instant(datetime.date(2024, 1, 8)) == datetime.datetime(
        2024, 1, 8, 0, 0, 0, tzinfo=UTC
    )
    assert normalize_instant("2024-01-08") == datetime.datetime(
        2024, 1, 8, 0, 0, 0, tzinfo=UTC
    )


@pytest.mark.parametrize("value", ["", "  ", "not a date", "2024-13-01T00:00:00Z", 12, None])
def test_normalize_invalid(value: object) -> None:
    """Test values that are not instants."""
    with pytest.raises(ValueError):
        normalize_instant(value)
