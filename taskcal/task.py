"""A task definition describes a single task or a recurring series of tasks."""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import TaskParseError
from .rules import parse_rule
from .types import OptionalInstant, Recur

__all__ = ["TaskDefinition", "TaskStatus"]


class TaskStatus(str, enum.Enum):
    """Lifecycle status of a task series.

    The expander does not filter on status; callers choose which tasks to
    pass in.
    """

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class TaskDefinition(BaseModel):
    """A task series as stored by the planner.

    A task without an `rrule` occurs exactly once at `dtstart`. The `dtstart`
    is an absolute instant and `timezone` is the IANA zone the series is
    conceptually anchored to. Both are optional here so that incomplete
    records can be reported and skipped during expansion.
    """

    id: str
    user_id: Optional[str] = None
    title: str
    dtstart: OptionalInstant = None

    duration_minutes: int = Field(gt=0)
    """Length of each occurrence."""

    rrule: Optional[str] = None
    """Recurrence rule text, e.g. 'FREQ=WEEKLY;INTERVAL=1'."""

    icon_name: Optional[str] = None
    timezone: Optional[str] = None
    status: TaskStatus = TaskStatus.ACTIVE
    created_at: OptionalInstant = None
    updated_at: OptionalInstant = None

    model_config = ConfigDict(
        validate_assignment=True,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    @field_validator("rrule", "timezone", mode="before")
    @classmethod
    def empty_as_none(cls, value: Any) -> Any:
        """Treat blank strings the same as unset."""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def recurring(self) -> bool:
        """Return True if this task repeats."""
        return self.rrule is not None

    def as_recur(self) -> Recur | None:
        """Return the parsed recurrence rule for the task, if any."""
        if self.rrule is None:
            return None
        return parse_rule(self.rrule)

    @classmethod
    def from_record(cls, record: Any) -> TaskDefinition:
        """Parse a stored task row, raising TaskParseError when invalid."""
        try:
            return cls.model_validate(record)
        except ValidationError as err:
            raise TaskParseError(
                "Failed to parse task record",
                detailed_error=str(err),
            ) from err
