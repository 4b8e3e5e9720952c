"""Build the schedule of a task from form style input.

Task editors collect a local start date and time, a duration and a simple
recurrence choice. This module turns that input into the values stored on a
`TaskDefinition`: the absolute `dtstart` and the recurrence rule text.
"""

from __future__ import annotations

import datetime
import enum
import logging
import re
import zoneinfo
from collections.abc import Mapping
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from .exceptions import ScheduleError
from .task import TaskDefinition
from .types import Instant
from .types.recur import Frequency, Recur
from .util import uid_factory

__all__ = [
    "EndType",
    "RecurrenceInput",
    "Schedule",
    "ScheduleInput",
    "build_schedule",
]

_LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_DURATION_MINUTES = 1440
DEFAULT_ICON_NAME = "Activity"
DEFAULT_TIMEZONE = "UTC"
ONCE = "once"
TIME_REGEX = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
END_OF_DAY = datetime.time(23, 59, 59)

FREQUENCIES = {
    "daily": Frequency.DAILY,
    "weekly": Frequency.WEEKLY,
    "monthly": Frequency.MONTHLY,
}


class EndType(str, enum.Enum):
    """How a recurring schedule ends."""

    NEVER = "never"
    AFTER = "after"
    ON = "on"


class RecurrenceInput(BaseModel):
    """The recurrence choice from a task form."""

    frequency: Optional[str] = None
    """One of 'once', 'daily', 'weekly' or 'monthly'."""

    interval: Union[int, str, None] = 1
    end_type: Optional[str] = EndType.NEVER.value

    occurrences: Union[int, str, None] = None
    """Number of occurrences when the schedule ends 'after'."""

    end_date: Union[datetime.date, str, None] = None
    """Last local date of the schedule when it ends 'on' a date."""


class ScheduleInput(BaseModel):
    """Task form values needed to compute a schedule."""

    title: Optional[str] = None
    start_date: Union[datetime.date, str, None] = None
    start_time: Optional[str] = None
    duration_minutes: Union[int, str, None] = None
    timezone: Optional[str] = None
    icon_name: Optional[str] = None
    recurrence: Optional[RecurrenceInput] = None


class Schedule(BaseModel):
    """Values to store on a task definition."""

    title: str
    dtstart: Instant
    duration_minutes: int
    rrule: Optional[str] = None
    timezone: str
    icon_name: str

    model_config = ConfigDict(frozen=True)

    def as_task(self, task_id: str | None = None, **kwargs: Any) -> TaskDefinition:
        """Return a new task definition with this schedule."""
        return TaskDefinition(
            id=task_id or uid_factory(),
            **self.model_dump(),
            **kwargs,
        )


def _parse_int(value: Any) -> int | None:
    """Parse an integer form value, returning None when not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_date(value: Any, name: str) -> datetime.date:
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(str(value))
    except ValueError as err:
        raise ScheduleError(f"{name} must be in YYYY-MM-DD format.") from err


def _timezone(name: str) -> zoneinfo.ZoneInfo:
    try:
        return zoneinfo.ZoneInfo(name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError) as err:
        raise ScheduleError(f"Unknown timezone: {name}") from err


def _build_rule(
    recurrence: RecurrenceInput,
    local_start: datetime.datetime,
    tzinfo: datetime.tzinfo,
) -> str | None:
    """Return the rule text for the recurrence choice, or None for 'once'."""
    frequency = (recurrence.frequency or "").strip().lower()
    if frequency == ONCE:
        return None
    if (freq := FREQUENCIES.get(frequency)) is None:
        raise ScheduleError(f"Invalid recurrence frequency provided: {recurrence.frequency}")

    interval = max(1, _parse_int(recurrence.interval) or 1)
    count: int | None = None
    until: datetime.datetime | None = None
    end_type = (recurrence.end_type or EndType.NEVER.value).strip().lower()
    if end_type == EndType.AFTER:
        count = _parse_int(recurrence.occurrences)
        if count is None or count < 1:
            raise ScheduleError("Occurrences must be at least 1 for 'after'.")
    elif end_type == EndType.ON:
        if not recurrence.end_date:
            raise ScheduleError("End date is required for 'on'.")
        end_date = _parse_date(recurrence.end_date, "End date")
        if end_date < local_start.date():
            raise ScheduleError("End date cannot be before the start date.")
        until = datetime.datetime.combine(end_date, END_OF_DAY, tzinfo=tzinfo).astimezone(
            datetime.UTC
        )
    elif end_type != EndType.NEVER:
        _LOGGER.debug("Unknown end type %r treated as 'never'", recurrence.end_type)

    return Recur(freq=freq, interval=interval, count=count, until=until).as_rrule_str()


def build_schedule(
    data: ScheduleInput | Mapping[str, Any],
    max_duration_minutes: int = DEFAULT_MAX_DURATION_MINUTES,
) -> Schedule:
    """Validate task form input and compute the task schedule.

    The start date and time are local to the input timezone and are
    converted to an absolute UTC `dtstart`. An end date is inclusive of the
    whole local day.
    """
    if not isinstance(data, ScheduleInput):
        try:
            data = ScheduleInput.model_validate(data)
        except ValidationError as err:
            raise ScheduleError(f"Invalid schedule input: {err}") from err

    if not data.title or not data.title.strip():
        raise ScheduleError("Task title is required.")
    if not data.start_date:
        raise ScheduleError("Start date is required.")
    start_date = _parse_date(data.start_date, "Start date")
    if not data.start_time or not (match := TIME_REGEX.fullmatch(data.start_time)):
        raise ScheduleError("Start time is required in HH:mm format.")
    duration = _parse_int(data.duration_minutes)
    if duration is None or not 1 <= duration <= max_duration_minutes:
        raise ScheduleError(
            f"Duration must be between 1 and {max_duration_minutes} minutes."
        )
    if data.recurrence is None or not data.recurrence.frequency:
        raise ScheduleError("Recurrence frequency selection is required.")

    timezone = (data.timezone or "").strip() or DEFAULT_TIMEZONE
    tzinfo = _timezone(timezone)
    local_start = datetime.datetime.combine(
        start_date,
        datetime.time(int(match.group(1)), int(match.group(2))),
        tzinfo=tzinfo,
    )
    rrule = _build_rule(data.recurrence, local_start, tzinfo)
    dtstart = local_start.astimezone(datetime.UTC)
    _LOGGER.debug(
        "Computed schedule dtstart=%s rrule=%s timezone=%s",
        dtstart.isoformat(),
        rrule,
        timezone,
    )
    return Schedule(
        title=data.title.strip(),
        dtstart=dtstart,
        duration_minutes=duration,
        rrule=rrule,
        timezone=timezone,
        icon_name=data.icon_name or DEFAULT_ICON_NAME,
    )
