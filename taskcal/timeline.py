"""A Timeline is a chronological view over expanded task occurrences.

Calendar views render a window (e.g. a week) from a single expansion and then
need to slice it into columns per day in the viewer's timezone. A timeline
supports those range queries over the already expanded instances:

```python
import datetime
import zoneinfo

from taskcal.expander import expand
from taskcal.timeline import InstanceTimeline

tz = zoneinfo.ZoneInfo("America/New_York")
timeline = InstanceTimeline(expand(tasks, exceptions, week_start, week_end))
for instance in timeline.on_date(datetime.date(2024, 1, 3), tz):
    print(instance.title, instance.scheduled_time_utc.astimezone(tz))
```
"""

from __future__ import annotations

import datetime
from collections.abc import Iterable, Iterator

from .instance import CalculatedInstance
from .timespan import Timespan
from .util import normalize_instant

__all__ = ["InstanceTimeline"]


def _local_midnight(day: datetime.date, tzinfo: datetime.tzinfo) -> datetime.datetime:
    """Return the start of a calendar day in a timezone as a UTC instant."""
    return datetime.datetime.combine(day, datetime.time(), tzinfo=tzinfo).astimezone(
        datetime.UTC
    )


class InstanceTimeline(Iterable[CalculatedInstance]):
    """A set of task occurrences ordered by scheduled time."""

    def __init__(self, instances: Iterable[CalculatedInstance]) -> None:
        """Initialize InstanceTimeline, sorting the instances if needed."""
        self._instances = sorted(instances, key=lambda value: value.scheduled_time_utc)

    def __iter__(self) -> Iterator[CalculatedInstance]:
        """Return an iterator as a traversal over instances in chronological order."""
        return iter(self._instances)

    def __len__(self) -> int:
        return len(self._instances)

    def overlapping(
        self,
        start: datetime.date | datetime.datetime | str,
        end: datetime.date | datetime.datetime | str,
    ) -> Iterator[CalculatedInstance]:
        """Return an iterator containing instances active during the timespan.

        The end date is exclusive.
        """
        timespan = Timespan.of(start, end)
        for instance in self._instances:
            if instance.timespan.intersects(timespan):
                yield instance
            elif instance.scheduled_time_utc >= timespan.end:
                break

    def included(
        self,
        start: datetime.date | datetime.datetime | str,
        end: datetime.date | datetime.datetime | str,
    ) -> Iterator[CalculatedInstance]:
        """Return an iterator for all instances that start and end in the timespan."""
        timespan = Timespan.of(start, end)
        for instance in self._instances:
            if instance.timespan.is_included_in(timespan):
                yield instance
            elif instance.scheduled_time_utc >= timespan.end:
                break

    def start_after(
        self,
        instant: datetime.date | datetime.datetime | str,
    ) -> Iterator[CalculatedInstance]:
        """Return an iterator containing instances starting after the specified time."""
        instant_value = normalize_instant(instant)
        for instance in self._instances:
            if instance.scheduled_time_utc > instant_value:
                yield instance

    def on_date(
        self, day: datetime.date, tzinfo: datetime.tzinfo
    ) -> Iterator[CalculatedInstance]:
        """Return an iterator containing all instances active on the local day."""
        return self.overlapping(
            _local_midnight(day, tzinfo),
            _local_midnight(day + datetime.timedelta(days=1), tzinfo),
        )

    def group_by_date(
        self, tzinfo: datetime.tzinfo
    ) -> dict[datetime.date, list[CalculatedInstance]]:
        """Group instances by the local date they are scheduled to start on."""
        result: dict[datetime.date, list[CalculatedInstance]] = {}
        for instance in self._instances:
            day = instance.scheduled_time_utc.astimezone(tzinfo).date()
            result.setdefault(day, []).append(instance)
        return result
