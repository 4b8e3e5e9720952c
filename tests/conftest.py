"""Test fixtures."""

from collections.abc import Generator
from typing import Any
from unittest.mock import patch

import pytest

from taskcal.rules import parse_rule


@pytest.fixture(autouse=True)
def clear_rule_cache() -> Generator[None, None, None]:
    """Start each test with an empty recurrence rule cache."""
    parse_rule.cache_clear()
    yield
    parse_rule.cache_clear()


@pytest.fixture(name="_uid")
def mock_uid() -> Generator[None, None, None]:
    """Patch out uuid creation with a fixed value."""
    counter = 0

    def func() -> str:
        nonlocal counter
        counter += 1
        return f"mock-uid-{counter}"

    with patch("taskcal.series.uid_factory", new=func), patch(
        "taskcal.schedule.uid_factory", new=func
    ):
        yield


@pytest.fixture(name="weekly_task")
def mock_weekly_task() -> dict[str, Any]:
    """Fixture for a task row that repeats every week on Monday at 09:00 UTC."""
    return {
        "id": "task-1",
        "user_id": "user-1",
        "title": "Gym",
        "dtstart": "2024-01-01T09:00:00.000Z",
        "duration_minutes": 60,
        "rrule": "FREQ=WEEKLY;INTERVAL=1",
        "icon_name": "Dumbbell",
        "timezone": "Europe/London",
        "status": "active",
    }
