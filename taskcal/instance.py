"""A concrete occurrence of a task produced by the expander."""

from __future__ import annotations

import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .timespan import Timespan
from .types import Instant, OptionalInstant

__all__ = ["CalculatedInstance"]


class CalculatedInstance(BaseModel):
    """A display ready occurrence of a task with any exception applied.

    Instances are recomputed for every expansion and never stored. Use
    `model_dump(mode="json")` to get instants in their canonical UTC form.
    """

    id: str
    """The applied exception id, otherwise '{task_id}-{original instant key}'."""

    task_id: str

    original_occurrence_time_utc: Instant
    """The occurrence time according to the rule, used to match exceptions."""

    scheduled_time_utc: Instant
    """The time the occurrence is shown at, which an exception may move."""

    duration_minutes: int
    title: str
    is_complete: bool = False
    completion_time: OptionalInstant = None
    is_cancelled: bool = False
    icon_name: Optional[str] = None
    timezone: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def duration(self) -> datetime.timedelta:
        """Return the duration of the occurrence."""
        return datetime.timedelta(minutes=self.duration_minutes)

    @property
    def end_time_utc(self) -> datetime.datetime:
        """Return the time the occurrence ends."""
        return self.scheduled_time_utc + self.duration

    @property
    def timespan(self) -> Timespan:
        """Return the scheduled timespan of the occurrence."""
        return Timespan(self.scheduled_time_utc, self.end_time_utc)

    @property
    def rescheduled(self) -> bool:
        """Return True if an exception moved this occurrence."""
        return self.scheduled_time_utc != self.original_occurrence_time_utc
