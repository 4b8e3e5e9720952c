"""An override attached to a single occurrence of a task."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .exceptions import TaskParseError
from .types import OptionalInstant
from .util import instant_key

__all__ = ["TaskException"]

CANCELLED_DEFAULTS: dict[str, Any] = {
    "new_start_time": None,
    "new_duration_minutes": None,
    "override_title": None,
    "icon_name": None,
    "is_complete": False,
    "completion_time": None,
}
TRUE_VALUES = (True, "true", "True", "TRUE", "1", "t")


class TaskException(BaseModel):
    """Edits, cancels or completes one occurrence of a task.

    An exception is matched to its occurrence by `task_id` and the
    `original_occurrence_time`, which is always the unmodified time of the
    occurrence even when `new_start_time` moves it.
    """

    id: Optional[str] = None
    """Unset for exceptions that are not stored yet."""

    task_id: Optional[str] = None
    user_id: Optional[str] = None

    original_occurrence_time: OptionalInstant = None
    """The time the occurrence has according to the task's rule."""

    new_start_time: OptionalInstant = None
    new_duration_minutes: Optional[int] = Field(default=None, ge=0)
    override_title: Optional[str] = None
    icon_name: Optional[str] = None

    is_cancelled: bool = False
    """A cancelled occurrence is removed; other fields are ignored."""

    is_complete: bool = False
    completion_time: OptionalInstant = None
    created_at: OptionalInstant = None
    updated_at: OptionalInstant = None

    model_config = ConfigDict(
        validate_assignment=True,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    @model_validator(mode="before")
    @classmethod
    def ignore_cancelled_overrides(cls, data: Any) -> Any:
        """Overrides of a cancelled occurrence are reset before validation."""
        if isinstance(data, Mapping) and data.get("is_cancelled") in TRUE_VALUES:
            return {**data, **CANCELLED_DEFAULTS}
        return data

    @field_validator("is_cancelled", "is_complete", mode="before")
    @classmethod
    def null_as_false(cls, value: Any) -> Any:
        """Database rows may carry null for unset flags."""
        if value is None:
            return False
        return value

    @field_validator("task_id", mode="before")
    @classmethod
    def empty_task_id(cls, value: Any) -> Any:
        """Treat a blank task id as unset."""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def natural_key(self) -> tuple[str, str] | None:
        """Return the (task_id, instant key) pair identifying the occurrence."""
        if self.task_id is None or self.original_occurrence_time is None:
            return None
        return (self.task_id, instant_key(self.original_occurrence_time))

    @classmethod
    def from_record(cls, record: Any) -> TaskException:
        """Parse a stored exception row, raising TaskParseError when invalid."""
        try:
            return cls.model_validate(record)
        except ValidationError as err:
            raise TaskParseError(
                "Failed to parse task exception record",
                detailed_error=str(err),
            ) from err
