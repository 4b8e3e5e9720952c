"""Implementation of recurrence rules for tasks.

This library handles the parsing of the rules into a pydantic model and
relies on the `dateutil.rrule` implementation for the actual implementation
of the date and time repetition.

Rules are stored on a task as RFC 5545 text. Older planner clients stored
the output of a javascript rule library which may include a `DTSTART` line
ahead of the `RRULE` line, for example:

```
DTSTART:20240101T090000Z
RRULE:FREQ=WEEKLY;INTERVAL=1
```

The `DTSTART` line is ignored: a task is always anchored to its own `dtstart`.
"""

from __future__ import annotations

import datetime
import enum
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from dateutil import rrule
from pydantic import BaseModel, ConfigDict, Field, field_validator

_LOGGER = logging.getLogger(__name__)


# Note: This can be StrEnum in python 3.11 and higher
class Weekday(str, enum.Enum):
    """Corresponds to a day of the week."""

    SUNDAY = "SU"
    MONDAY = "MO"
    TUESDAY = "TU"
    WEDNESDAY = "WE"
    THURSDAY = "TH"
    FRIDAY = "FR"
    SATURDAY = "SA"

    def __str__(self) -> str:
        """Return string representation."""
        return self.value


@dataclass
class WeekdayValue:
    """Holds a weekday value and optional occurrence value."""

    weekday: Weekday
    """Day of the week value."""

    occurrence: Optional[int] = None
    """The occurrence value indicates the nth occurrence.

    Indicates the nth occurrence of a specific day within the MONTHLY or
    YEARLY "RRULE". For example +1 represents the first Monday of the
    month, or -1 represents the last Monday of the month.
    """

    def __str__(self) -> str:
        """Return the WeekdayValue as an encoded string."""
        return f"{self.occurrence or ''}{self.weekday}"

    def as_rrule_weekday(self) -> rrule.weekday:
        """Convert the occurrence to a weekday value."""
        wd = RRULE_WEEKDAY[self.weekday]
        if self.occurrence is None:
            return wd
        return wd(self.occurrence)


class Frequency(str, enum.Enum):
    """Type of recurrence rule.

    Frequencies SECONDLY, MINUTELY, HOURLY are not supported.
    """

    DAILY = "DAILY"
    """Repeating tasks based on an interval of a day or more."""

    WEEKLY = "WEEKLY"
    """Repeating tasks based on an interval of a week or more."""

    MONTHLY = "MONTHLY"
    """Repeating tasks based on an interval of a month or more."""

    YEARLY = "YEARLY"
    """Repeating tasks based on an interval of a year or more."""


RRULE_FREQ = {
    Frequency.DAILY: rrule.DAILY,
    Frequency.WEEKLY: rrule.WEEKLY,
    Frequency.MONTHLY: rrule.MONTHLY,
    Frequency.YEARLY: rrule.YEARLY,
}
RRULE_WEEKDAY = {
    Weekday.MONDAY: rrule.MO,
    Weekday.TUESDAY: rrule.TU,
    Weekday.WEDNESDAY: rrule.WE,
    Weekday.THURSDAY: rrule.TH,
    Weekday.FRIDAY: rrule.FR,
    Weekday.SATURDAY: rrule.SA,
    Weekday.SUNDAY: rrule.SU,
}
WEEKDAY_REGEX = re.compile(r"([-+]?[0-9]*)([A-Z]+)")
UNTIL_DATETIME_REGEX = re.compile(r"^([0-9]{8})T([0-9]{6})(Z)?$")
UNTIL_DATE_REGEX = re.compile(r"^([0-9]{8})$")
RRULE_PREFIX = "RRULE:"
IGNORED_LINES = ("DTSTART", "EXDATE", "RDATE")

RecurInputDict = dict[
    str,
    Union[datetime.datetime, datetime.date, str, list[int], list[dict[str, Any]], None],
]


def _parse_until(value: str) -> datetime.datetime | datetime.date:
    """Parse an UNTIL value as a DATE-TIME or DATE."""
    if match := UNTIL_DATETIME_REGEX.fullmatch(value):
        result = datetime.datetime.strptime(
            f"{match.group(1)}T{match.group(2)}", "%Y%m%dT%H%M%S"
        )
        if match.group(3):
            result = result.replace(tzinfo=datetime.UTC)
        return result
    if UNTIL_DATE_REGEX.fullmatch(value):
        return datetime.datetime.strptime(value, "%Y%m%d").date()
    raise ValueError(f"Expected UNTIL to match DATE or DATE-TIME pattern: {value}")


def _encode_until(value: datetime.date | datetime.datetime) -> str:
    """Encode an UNTIL value, always in UTC for a zoned DATE-TIME."""
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            return value.strftime("%Y%m%dT%H%M%S")
        return value.astimezone(datetime.UTC).strftime("%Y%m%dT%H%M%SZ")
    return value.strftime("%Y%m%d")


def _rule_text(value: str) -> str:
    """Extract the RRULE portion of a possibly multi-line rule string."""
    rules = []
    for line in value.strip().splitlines():
        line = line.strip()
        if not line:
            continue
        upper = line.upper()
        if upper.startswith(RRULE_PREFIX):
            rules.append(line[len(RRULE_PREFIX) :])
        elif upper.startswith(IGNORED_LINES):
            _LOGGER.debug("Ignoring recurrence line: %s", line)
        else:
            rules.append(line)
    if len(rules) != 1:
        raise ValueError(f"Expected exactly one recurrence rule, found {len(rules)}")
    return rules[0]


class Recur(BaseModel):
    """A type used to identify properties that contain a recurrence rule specification.

    The by properties reduce or limit the number of occurrences generated. Only by day
    of the week, by month day, by month and by set position are supported.
    Parts of rfc5545 recurrence spec not supported:
      By second, minute, hour
      By yearday, weekno
      Wkst rules
    """

    freq: Frequency

    until: Union[datetime.datetime, datetime.date, None] = None
    """The inclusive end date of the recurrence, or the last instance."""

    count: Optional[int] = Field(default=None, ge=1)
    """The number of occurrences to bound the recurrence."""

    interval: int = Field(default=1, ge=1)
    """Interval at which the recurrence rule repeats."""

    by_weekday: list[WeekdayValue] = Field(alias="byday", default_factory=list)
    """Supported days of the week."""

    by_month_day: list[int] = Field(alias="bymonthday", default_factory=list)
    """Days of the month between 1 to 31."""

    by_month: list[int] = Field(alias="bymonth", default_factory=list)
    """Month number between 1 and 12."""

    by_setpos: list[int] = Field(alias="bysetpos", default_factory=list)
    """Values that corresponds to the nth occurrence within the set of instances."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("by_month_day")
    @classmethod
    def validate_month_day(cls, values: list[int]) -> list[int]:
        """Validate days of the month are within range."""
        for value in values:
            if not 1 <= abs(value) <= 31:
                raise ValueError(f"BYMONTHDAY out of range: {value}")
        return values

    @field_validator("by_month")
    @classmethod
    def validate_month(cls, values: list[int]) -> list[int]:
        """Validate months are within range."""
        for value in values:
            if not 1 <= value <= 12:
                raise ValueError(f"BYMONTH out of range: {value}")
        return values

    def as_rrule(self, dtstart: datetime.datetime) -> rrule.rrule:
        """Create a dateutil rrule anchored at the specified start time.

        A zoned `dtstart` requires a zoned UNTIL value, so floating and DATE
        values for UNTIL are interpreted as UTC.
        """
        if (freq := RRULE_FREQ.get(self.freq)) is None:
            raise ValueError(f"Unsupported frequency in rrule: {self.freq}")

        until = self.until
        if until is not None and dtstart.tzinfo is not None:
            if not isinstance(until, datetime.datetime):
                until = datetime.datetime.combine(until, datetime.time())
            if until.tzinfo is None:
                until = until.replace(tzinfo=datetime.UTC)

        byweekday: list[rrule.weekday] | None = None
        if self.by_weekday:
            byweekday = [weekday.as_rrule_weekday() for weekday in self.by_weekday]
        return rrule.rrule(
            freq=freq,
            dtstart=dtstart,
            interval=self.interval,
            count=self.count,
            until=until,
            byweekday=byweekday,
            bymonthday=self.by_month_day if self.by_month_day else None,
            bymonth=self.by_month if self.by_month else None,
            bysetpos=self.by_setpos if self.by_setpos else None,
            cache=True,
        )

    def as_rrule_str(self) -> str:
        """Return the Recur instance as an RRULE string."""
        return self.__encode_property_value__(
            self.model_dump(by_alias=True, exclude_none=True, exclude_defaults=True)
        )

    @classmethod
    def from_rrule(cls, rrule_str: str) -> Recur:
        """Create a Recur object from an RRULE string."""
        return Recur.model_validate(cls.__parse_property_value__(rrule_str))

    @classmethod
    def __encode_property_value__(cls, data: dict[str, Any]) -> str:
        """Encode the recurrence rule in RFC 5545 format."""
        result = []
        for key, value in data.items():
            if key in ("bymonthday", "bymonth", "bysetpos"):
                if not value:
                    continue
                value = ",".join([str(val) for val in value])
            elif key == "byday":
                values = []
                for weekday_value in value:
                    if isinstance(weekday_value, dict):
                        weekday_value = WeekdayValue(**weekday_value)
                    values.append(str(weekday_value))
                value = ",".join(values)
            elif isinstance(value, datetime.date):
                value = _encode_until(value)
            elif isinstance(value, enum.Enum):
                value = value.name
            if not value:
                continue
            result.append(f"{key.upper()}={value}")
        return ";".join(result)

    @classmethod
    def __parse_property_value__(  # pylint: disable=too-many-branches
        cls, prop: Any
    ) -> RecurInputDict:
        """Parse the recurrence rule text as a dictionary as Pydantic input.

        An input rule like 'FREQ=YEARLY;BYMONTH=4' is converted
        into dictionary.
        """
        if not isinstance(prop, str):
            raise ValueError(f"Expected recurrence rule as a string: {prop!r}")
        text = _rule_text(prop)
        result: RecurInputDict = {}
        for part in text.split(";"):
            if not part:
                continue
            if "=" not in part:
                raise ValueError(
                    f"Recurrence rule had unexpected format missing '=': {text}"
                )
            key, value = part.split("=", 1)
            key = key.strip().lower()
            value = value.strip()
            if key in result:
                raise ValueError(f"Recurrence rule repeats '{key.upper()}': {text}")
            if key == "until":
                result[key] = _parse_until(value)
            elif key in ("bymonthday", "bymonth", "bysetpos"):
                result[key] = [int(val) for val in value.split(",")]
            elif key == "byday":
                # Build inputs for WeekdayValue dataclass
                results: list[dict[str, Any]] = []
                for day in value.split(","):
                    if not (match := WEEKDAY_REGEX.fullmatch(day)):
                        raise ValueError(f"Expected value to match BYDAY pattern: {day}")
                    occurrence, weekday = match.groups()
                    weekday_result: dict[str, Any] = {"weekday": weekday}
                    if occurrence:
                        weekday_result["occurrence"] = int(occurrence)
                    results.append(weekday_result)
                result[key] = results
            elif key == "freq":
                result[key] = value.upper()
            elif key == "wkst":
                _LOGGER.debug("Ignoring unsupported WKST value: %s", value)
            else:
                result[key] = value
        return result
