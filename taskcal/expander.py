"""Expand task definitions into the concrete occurrences within a window.

The expander is given every task and every exception a view needs and
returns the occurrences in the window, in order, with exceptions applied:

```python
from taskcal.expander import expand

instances = expand(
    tasks=[
        {
            "id": "gym",
            "title": "Gym",
            "dtstart": "2024-01-01T09:00:00Z",
            "duration_minutes": 60,
            "rrule": "FREQ=WEEKLY;INTERVAL=1",
            "timezone": "Europe/London",
        }
    ],
    exceptions=[
        {
            "id": "skip-1",
            "task_id": "gym",
            "original_occurrence_time": "2024-01-08T09:00:00.000Z",
            "is_cancelled": True,
        }
    ],
    range_start="2024-01-01T00:00:00Z",
    range_end="2024-01-22T00:00:00Z",
)
print([instance.scheduled_time_utc for instance in instances])
```

The window is half-open. Exceptions are matched by the canonical key of the
original occurrence time (see `taskcal.util.instant_key`). Bad records, bad
rules and bad ranges are logged and skipped so that one bad task never hides
the rest of a view.
"""

from __future__ import annotations

import datetime
import enum
import logging
import zoneinfo
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any, TypeVar, Union

from .exceptions import RecurrenceError, TaskParseError
from .instance import CalculatedInstance
from .iter import MergedIterable, SortableItem, sorted_items
from .rules import occurrences_between
from .task import TaskDefinition
from .task_exception import TaskException
from .util import instant_key, normalize_instant

__all__ = [
    "Anchor",
    "ExceptionIndex",
    "TaskExpander",
    "build_exception_index",
    "expand",
    "merge_occurrence",
]

_LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_INSTANCES_PER_TASK = 1000

ExceptionIndex = Mapping[str, Mapping[str, TaskException]]
"""Exceptions by task id, then by the instant key of the original time."""

TaskInput = Union[TaskDefinition, Mapping[str, Any]]
ExceptionInput = Union[TaskException, Mapping[str, Any]]

_ModelT = TypeVar("_ModelT", TaskDefinition, TaskException)

_EMPTY: Mapping[str, TaskException] = MappingProxyType({})


class Anchor(str, enum.Enum):
    """How a recurrence rule is anchored to the task start."""

    UTC = "utc"
    """Repeat at the same absolute time as dtstart."""

    LOCAL = "local"
    """Repeat at the same wall clock time in the task timezone."""


def _validate_records(
    records: Iterable[_ModelT | Mapping[str, Any] | None],
    model: type[_ModelT],
) -> Iterable[_ModelT]:
    """Yield records as models, skipping records that fail validation."""
    for index, record in enumerate(records):
        if record is None:
            _LOGGER.warning("Skipping empty %s at position %d", model.__name__, index)
            continue
        if isinstance(record, model):
            yield record
            continue
        try:
            yield model.from_record(record)
        except TaskParseError as err:
            _LOGGER.warning(
                "Skipping invalid %s at position %d: %s",
                model.__name__,
                index,
                err.detailed_error,
            )


def build_exception_index(exceptions: Iterable[ExceptionInput | None]) -> ExceptionIndex:
    """Index exceptions by task id and original occurrence time.

    Exceptions without a task id or original time are skipped. When two
    exceptions share the same key the later one wins.
    """
    index: dict[str, dict[str, TaskException]] = {}
    for exception in _validate_records(exceptions, TaskException):
        if (key := exception.natural_key) is None:
            _LOGGER.warning(
                "Skipping exception %s without task_id or original_occurrence_time",
                exception.id,
            )
            continue
        task_id, original_key = key
        task_exceptions = index.setdefault(task_id, {})
        if original_key in task_exceptions:
            _LOGGER.debug(
                "Exception %s replaces %s for task %s at %s",
                exception.id,
                task_exceptions[original_key].id,
                task_id,
                original_key,
            )
        task_exceptions[original_key] = exception
    return MappingProxyType(
        {task_id: MappingProxyType(values) for task_id, values in index.items()}
    )


def merge_occurrence(
    task: TaskDefinition,
    original: datetime.datetime,
    exception: TaskException | None,
) -> CalculatedInstance | None:
    """Apply an exception to an occurrence, or return None if it is cancelled."""
    original_key = instant_key(original)
    if exception is None:
        return CalculatedInstance(
            id=f"{task.id}-{original_key}",
            task_id=task.id,
            original_occurrence_time_utc=original,
            scheduled_time_utc=original,
            duration_minutes=task.duration_minutes,
            title=task.title,
            icon_name=task.icon_name,
            timezone=task.timezone,
        )
    if exception.is_cancelled:
        return None
    return CalculatedInstance(
        id=exception.id or f"{task.id}-{original_key}",
        task_id=task.id,
        original_occurrence_time_utc=original,
        scheduled_time_utc=(
            exception.new_start_time
            if exception.new_start_time is not None
            else original
        ),
        duration_minutes=(
            exception.new_duration_minutes
            if exception.new_duration_minutes is not None
            else task.duration_minutes
        ),
        title=(
            exception.override_title
            if exception.override_title is not None
            else task.title
        ),
        is_complete=exception.is_complete,
        completion_time=exception.completion_time,
        icon_name=(
            exception.icon_name if exception.icon_name is not None else task.icon_name
        ),
        timezone=task.timezone,
    )


class TaskExpander:
    """Expands tasks into occurrences for a window of time.

    An expander only holds its options, so a single instance may be shared
    between concurrent views.
    """

    def __init__(
        self,
        anchor: Anchor | str = Anchor.UTC,
        max_instances_per_task: int | None = DEFAULT_MAX_INSTANCES_PER_TASK,
    ) -> None:
        """Initialize TaskExpander.

        The `anchor` decides whether rules repeat at a fixed UTC time or at a
        fixed local time in the task timezone. The `max_instances_per_task`
        bounds how many occurrences a single task may contribute to a window.
        """
        self._anchor = Anchor(anchor)
        if max_instances_per_task is not None and max_instances_per_task < 1:
            raise ValueError("max_instances_per_task must be at least 1")
        self._max_instances = max_instances_per_task

    def expand(
        self,
        tasks: Iterable[TaskInput | None],
        exceptions: Iterable[ExceptionInput | None],
        range_start: Any,
        range_end: Any,
    ) -> list[CalculatedInstance]:
        """Return the occurrences of all tasks within [range_start, range_end).

        Results are sorted by scheduled time. Occurrences at the same time are
        returned in the order their tasks were given.
        """
        tasks = list(tasks)
        if not tasks:
            return []
        try:
            start = normalize_instant(range_start)
            end = normalize_instant(range_end)
        except ValueError as err:
            _LOGGER.warning(
                "Invalid expansion range (%r, %r): %s", range_start, range_end, err
            )
            return []
        if end < start:
            _LOGGER.warning(
                "Invalid expansion range: end %s is before start %s",
                end.isoformat(),
                start.isoformat(),
            )
            return []

        index = build_exception_index(exceptions)
        streams: list[Iterable[SortableItem[datetime.datetime, CalculatedInstance]]] = []
        for task in _validate_records(tasks, TaskDefinition):
            if task.dtstart is None or not task.timezone:
                _LOGGER.warning("Task %s is missing dtstart or timezone; skipping", task.id)
                continue
            task_exceptions = index.get(task.id, _EMPTY)
            if task.rrule is None:
                instances = self._single_occurrence(task, task_exceptions, start, end)
            else:
                instances = self._recurring_occurrences(task, task_exceptions, start, end)
            if instances:
                streams.append(
                    sorted_items(instances, lambda value: value.scheduled_time_utc)
                )

        results = [item.item for item in MergedIterable(streams)]
        _LOGGER.debug(
            "Expanded %d tasks into %d instances for %s to %s",
            len(tasks),
            len(results),
            start.isoformat(),
            end.isoformat(),
        )
        return results

    def _single_occurrence(
        self,
        task: TaskDefinition,
        task_exceptions: Mapping[str, TaskException],
        start: datetime.datetime,
        end: datetime.datetime,
    ) -> list[CalculatedInstance]:
        """Return the occurrence of a non-recurring task if it is in range."""
        assert task.dtstart is not None
        if not start <= task.dtstart < end:
            return []
        exception = task_exceptions.get(instant_key(task.dtstart))
        if (instance := merge_occurrence(task, task.dtstart, exception)) is None:
            return []
        return [instance]

    def _recurring_occurrences(
        self,
        task: TaskDefinition,
        task_exceptions: Mapping[str, TaskException],
        start: datetime.datetime,
        end: datetime.datetime,
    ) -> list[CalculatedInstance]:
        """Return the occurrences of a recurring task in range.

        A task with a rule that can't be evaluated contributes nothing.
        """
        assert task.rrule is not None
        if (anchor := self._rule_anchor(task)) is None:
            return []
        try:
            occurrences = occurrences_between(
                task.rrule,
                anchor,
                start,
                end,
                start_inclusive=True,
                limit=self._max_instances,
            )
        except RecurrenceError as err:
            _LOGGER.error(
                "Error processing rule for task %s (rule: %r); skipping: %s",
                task.id,
                task.rrule,
                err,
            )
            return []

        instances = []
        for occurrence in occurrences:
            exception = task_exceptions.get(instant_key(occurrence))
            if (instance := merge_occurrence(task, occurrence, exception)) is not None:
                instances.append(instance)
        return instances

    def _rule_anchor(self, task: TaskDefinition) -> datetime.datetime | None:
        """Return the datetime the task's rule repeats from."""
        assert task.dtstart is not None
        if self._anchor == Anchor.UTC:
            return task.dtstart
        try:
            tzinfo = zoneinfo.ZoneInfo(task.timezone or "")
        except (zoneinfo.ZoneInfoNotFoundError, ValueError) as err:
            _LOGGER.warning(
                "Task %s has unknown timezone %r; skipping: %s",
                task.id,
                task.timezone,
                err,
            )
            return None
        return task.dtstart.astimezone(tzinfo)


def expand(
    tasks: Iterable[TaskInput | None],
    exceptions: Iterable[ExceptionInput | None],
    range_start: Any,
    range_end: Any,
    **kwargs: Any,
) -> list[CalculatedInstance]:
    """Return the occurrences of all tasks within [range_start, range_end).

    This is a shortcut for `TaskExpander(**kwargs).expand(...)`.
    """
    return TaskExpander(**kwargs).expand(tasks, exceptions, range_start, range_end)
