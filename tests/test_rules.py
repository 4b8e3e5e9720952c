"""Tests for evaluating recurrence rules."""

from __future__ import annotations

import datetime
import zoneinfo

import pytest

from taskcal.exceptions import RecurrenceError
from taskcal.rules import occurrences_between, parse_rule
from taskcal.types.recur import Frequency

UTC = datetime.UTC
ANCHOR = datetime.datetime(2024, 1, 1, 9, 0, 0, tzinfo=UTC)
NEW_YORK = zoneinfo.ZoneInfo("America/New_York")


def utc(*args: int) -> datetime.datetime:
    return datetime.datetime(*args, tzinfo=UTC)


def test_weekly_half_open() -> None:
    """Test the end of the window is exclusive."""
    assert occurrences_between(
        "FREQ=WEEKLY;INTERVAL=1", ANCHOR, utc(2024, 1, 1), utc(2024, 1, 22, 9)
    ) == [utc(2024, 1, 1, 9), utc(2024, 1, 8, 9), utc(2024, 1, 15, 9)]
    assert occurrences_between(
        "FREQ=WEEKLY;INTERVAL=1", ANCHOR, utc(2024, 1, 1), utc(2024, 1, 22, 9, 0, 1)
    ) == [
        utc(2024, 1, 1, 9),
        utc(2024, 1, 8, 9),
        utc(2024, 1, 15, 9),
        utc(2024, 1, 22, 9),
    ]


def test_start_inclusive() -> None:
    """Test an occurrence exactly at the start of the window."""
    start = utc(2024, 1, 8, 9)
    end = utc(2024, 1, 16)
    assert occurrences_between("FREQ=WEEKLY", ANCHOR, start, end) == [
        utc(2024, 1, 8, 9),
        utc(2024, 1, 15, 9),
    ]
    assert occurrences_between(
        "FREQ=WEEKLY", ANCHOR, start, end, start_inclusive=False
    ) == [utc(2024, 1, 15, 9)]


def test_window_before_anchor() -> None:
    """Test a window that ends before the series starts."""
    assert occurrences_between("FREQ=DAILY", ANCHOR, utc(2023, 12, 1), utc(2024, 1, 1)) == []


@pytest.mark.parametrize(
    ("rule", "expected"),
    [
        ("FREQ=DAILY;COUNT=2", [utc(2024, 1, 1, 9), utc(2024, 1, 2, 9)]),
        (
            "FREQ=DAILY;UNTIL=20240103T090000Z",
            [utc(2024, 1, 1, 9), utc(2024, 1, 2, 9), utc(2024, 1, 3, 9)],
        ),
        ("FREQ=DAILY;UNTIL=20240103", [utc(2024, 1, 1, 9), utc(2024, 1, 2, 9)]),
        ("FREQ=DAILY;INTERVAL=3;COUNT=2", [utc(2024, 1, 1, 9), utc(2024, 1, 4, 9)]),
        (
            "FREQ=MONTHLY;COUNT=3",
            [utc(2024, 1, 1, 9), utc(2024, 2, 1, 9), utc(2024, 3, 1, 9)],
        ),
        (
            "DTSTART:20230101T000000Z\nRRULE:FREQ=DAILY;COUNT=2",
            [utc(2024, 1, 1, 9), utc(2024, 1, 2, 9)],
        ),
    ],
)
def test_bounded_rules(rule: str, expected: list[datetime.datetime]) -> None:
    """Test rules bounded by COUNT or UNTIL."""
    assert occurrences_between(rule, ANCHOR, utc(2024, 1, 1), utc(2025, 1, 1)) == expected


def test_count_applies_from_anchor() -> None:
    """Test COUNT is counted from the anchor, not the window."""
    assert occurrences_between(
        "FREQ=DAILY;COUNT=5", ANCHOR, utc(2024, 1, 4), utc(2025, 1, 1)
    ) == [utc(2024, 1, 4, 9), utc(2024, 1, 5, 9)]


def test_wall_clock_anchor() -> None:
    """Test a zoned anchor keeps the local time across a DST transition."""
    anchor = datetime.datetime(2024, 3, 8, 9, 0, 0, tzinfo=NEW_YORK)
    result = occurrences_between("FREQ=DAILY", anchor, utc(2024, 3, 8), utc(2024, 3, 12))
    assert result == [
        utc(2024, 3, 8, 14),
        utc(2024, 3, 9, 14),
        utc(2024, 3, 10, 13),
        utc(2024, 3, 11, 13),
    ]
    assert all(value.tzinfo == UTC for value in result)


def test_limit(caplog: pytest.LogCaptureFixture) -> None:
    """Test the number of instants can be bounded."""
    result = occurrences_between(
        "FREQ=DAILY", ANCHOR, utc(2024, 1, 1), utc(2024, 2, 1), limit=3
    )
    assert result == [utc(2024, 1, 1, 9), utc(2024, 1, 2, 9), utc(2024, 1, 3, 9)]
    assert "truncating" in caplog.text


@pytest.mark.parametrize("rule", ["", "garbage", "FREQ=NEVER", "FREQ=DAILY;COUNT=x"])
def test_invalid_rule(rule: str) -> None:
    """Test invalid rule text raises a RecurrenceError."""
    with pytest.raises(RecurrenceError):
        occurrences_between(rule, ANCHOR, utc(2024, 1, 1), utc(2024, 2, 1))


def test_naive_anchor() -> None:
    """Test the anchor must have a timezone."""
    with pytest.raises(RecurrenceError):
        occurrences_between(
            "FREQ=DAILY",
            datetime.datetime(2024, 1, 1, 9),
            utc(2024, 1, 1),
            utc(2024, 2, 1),
        )


def test_parse_rule_cache() -> None:
    """Test parsed rules are cached by their text."""
    recur = parse_rule("FREQ=DAILY")
    assert recur.freq == Frequency.DAILY
    assert parse_rule("FREQ=DAILY") is recur
    assert parse_rule.cache_info().hits == 1
