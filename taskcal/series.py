"""Helpers for editing task series and their per-occurrence exceptions.

Editing a recurring task can apply to a single occurrence, to an occurrence
and everything after it, or to the whole series. A single occurrence is
edited by recording a `TaskException`. Ending or splitting a series rewrites
the recurrence rule so that it stops before a given occurrence.

These functions are pure: they return new records and leave storing them
to the caller.
"""

# pylint: disable=too-many-arguments

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from .exceptions import RecurrenceError, SeriesError
from .rules import occurrences_between
from .task import TaskDefinition, TaskStatus
from .task_exception import TaskException
from .util import dtstamp_factory, instant_key, normalize_instant, uid_factory

__all__ = [
    "cancel_occurrence",
    "end_series_before",
    "modify_occurrence",
    "prune_exceptions",
    "set_occurrence_completion",
    "split_series",
    "upsert_exception",
]

_LOGGER = logging.getLogger(__name__)

ONE_MILLISECOND = datetime.timedelta(milliseconds=1)

OVERRIDE_FIELDS = {
    "new_start_time",
    "new_duration_minutes",
    "override_title",
    "icon_name",
    "is_complete",
    "completion_time",
}

def end_series_before(
    task: TaskDefinition, occurrence_time: Any
) -> TaskDefinition | None:
    """Return a copy of the task whose rule ends before the specified occurrence.

    Rules bounded by COUNT keep only the occurrences before it. Other rules
    get an UNTIL at the last whole second before the occurrence, unless an
    earlier UNTIL is already set. Returns None when no occurrences would
    remain.
    """
    if task.rrule is None:
        raise SeriesError(f"Task {task.id} is not recurring")
    if task.dtstart is None:
        raise SeriesError(f"Task {task.id} has no dtstart")
    try:
        cutoff = normalize_instant(occurrence_time)
        recur = task.as_recur()
    except (ValueError, RecurrenceError) as err:
        raise SeriesError(f"Unable to end series for task {task.id}: {err}") from err
    assert recur is not None

    update: dict[str, Any]
    if recur.count is not None:
        try:
            remaining = len(
                occurrences_between(recur, task.dtstart, task.dtstart, cutoff)
            )
        except RecurrenceError as err:
            raise SeriesError(f"Unable to end series for task {task.id}: {err}") from err
        if remaining == 0:
            return None
        update = {"count": remaining}
    else:
        # UNTIL has second precision and is inclusive
        until = (cutoff - ONE_MILLISECOND).replace(microsecond=0)
        if until < task.dtstart:
            return None
        if recur.until is not None:
            # DATE and floating values are UTC, as in Recur.as_rrule
            until = min(until, normalize_instant(recur.until))
        update = {"until": until}

    rrule = recur.model_copy(update=update).as_rrule_str()
    _LOGGER.debug("Ending task %s rule %s as %s", task.id, task.rrule, rrule)
    return task.model_copy(update={"rrule": rrule, "updated_at": dtstamp_factory()})


def split_series(
    task: TaskDefinition,
    occurrence_time: Any,
    changes: Mapping[str, Any] | None = None,
) -> tuple[TaskDefinition | None, TaskDefinition]:
    """Split a series at an occurrence to edit that occurrence and all after it.

    Returns the original task ended before the occurrence (or None if nothing
    remains of it) and a new task for the occurrence and the future. The new
    task starts at the occurrence unless `changes` sets a new `dtstart`.
    """
    old_task = end_series_before(task, occurrence_time)
    now = dtstamp_factory()
    data = task.model_dump(exclude={"id", "created_at", "updated_at"})
    data.update(
        {
            "id": uid_factory(),
            "dtstart": normalize_instant(occurrence_time),
            "status": TaskStatus.ACTIVE,
            "created_at": now,
            "updated_at": now,
        }
    )
    data.update(changes or {})
    try:
        new_task = TaskDefinition.model_validate(data)
    except ValidationError as err:
        raise SeriesError(f"Invalid changes for task {task.id}: {err}") from err
    return old_task, new_task


def _exception_fields(
    task_id: str, original_occurrence_time: Any, existing: TaskException | None
) -> dict[str, Any]:
    """Return the fields identifying an exception, reusing an existing record."""
    if not task_id:
        raise SeriesError("Task id is required to record an exception")
    if original_occurrence_time is None or original_occurrence_time == "":
        raise SeriesError("Original occurrence time is required to record an exception")
    try:
        original = normalize_instant(original_occurrence_time)
    except ValueError as err:
        raise SeriesError(f"Invalid original occurrence time: {err}") from err
    if existing is not None and existing.natural_key != (task_id, instant_key(original)):
        raise SeriesError(
            f"Exception {existing.id} does not belong to task {task_id} at "
            f"{instant_key(original)}"
        )
    fields: dict[str, Any] = {
        "task_id": task_id,
        "original_occurrence_time": original,
        "updated_at": dtstamp_factory(),
    }
    if existing is not None:
        fields["id"] = existing.id or uid_factory()
        fields["created_at"] = existing.created_at
        fields["user_id"] = existing.user_id
    else:
        fields["id"] = uid_factory()
        fields["created_at"] = fields["updated_at"]
    return fields


def cancel_occurrence(
    task_id: str,
    original_occurrence_time: Any,
    existing: TaskException | None = None,
) -> TaskException:
    """Return an exception that removes a single occurrence.

    Any previous overrides or completion state are cleared.
    """
    return TaskException(
        **_exception_fields(task_id, original_occurrence_time, existing),
        is_cancelled=True,
    )


def modify_occurrence(
    task_id: str,
    original_occurrence_time: Any,
    existing: TaskException | None = None,
    **overrides: Any,
) -> TaskException:
    """Return an exception that overrides fields of a single occurrence.

    Overrides are merged with those of an existing exception. Passing None
    for an override clears it.
    """
    if unknown := set(overrides) - OVERRIDE_FIELDS:
        raise SeriesError(f"Unsupported occurrence overrides: {sorted(unknown)}")
    data: dict[str, Any] = {}
    if existing is not None:
        data.update(existing.model_dump(include=OVERRIDE_FIELDS))
    data.update(overrides)
    data.update(_exception_fields(task_id, original_occurrence_time, existing))
    data["is_cancelled"] = False
    try:
        return TaskException.model_validate(data)
    except ValidationError as err:
        raise SeriesError(f"Invalid occurrence overrides: {err}") from err


def set_occurrence_completion(
    task_id: str,
    original_occurrence_time: Any,
    complete: bool,
    existing: TaskException | None = None,
) -> TaskException:
    """Return an exception that marks a single occurrence complete or not."""
    return modify_occurrence(
        task_id,
        original_occurrence_time,
        existing,
        is_complete=complete,
        completion_time=dtstamp_factory() if complete else None,
    )


def upsert_exception(
    exceptions: Iterable[TaskException], exception: TaskException
) -> list[TaskException]:
    """Return the exceptions with one added or replaced by its natural key.

    A replaced exception keeps its position and id.
    """
    if (key := exception.natural_key) is None:
        raise SeriesError(f"Exception {exception.id} has no task_id or original time")
    result: list[TaskException] = []
    replaced = False
    for current in exceptions:
        if not replaced and current.natural_key == key:
            result.append(
                exception.model_copy(update={"id": current.id or exception.id})
            )
            replaced = True
        else:
            result.append(current)
    if not replaced:
        result.append(exception)
    return result


def prune_exceptions(
    exceptions: Iterable[TaskException],
    task_id: str,
    since: Any = None,
) -> list[TaskException]:
    """Return the exceptions without those for a task.

    When `since` is given only exceptions whose original occurrence time is
    at or after it are removed, e.g. after ending a series.
    """
    cutoff = normalize_instant(since) if since is not None else None
    result = []
    for exception in exceptions:
        if exception.task_id == task_id and (
            cutoff is None
            or exception.original_occurrence_time is None
            or exception.original_occurrence_time >= cutoff
        ):
            continue
        result.append(exception)
    return result
