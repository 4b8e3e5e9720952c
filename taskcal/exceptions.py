"""Exceptions for taskcal library."""


class TaskCalError(Exception):
    """Base exception for all taskcal errors."""


class TaskParseError(TaskCalError):
    """Exception raised when a task or exception record can't be parsed.

    The 'message' attribute contains a human-readable message about the
    error that occurred. The 'detailed_error' attribute can provide additional
    information about the error, such as the underlying validation errors,
    useful for debugging purposes.
    """

    def __init__(self, message: str, *, detailed_error: str | None = None) -> None:
        """Initialize the TaskParseError with a message."""
        super().__init__(message)
        self.message = message
        self.detailed_error = detailed_error


class RecurrenceError(TaskCalError):
    """Exception raised when evaluating a recurrence rule.

    Rule text comes from user input and from older versions of the planner,
    so it is common for a rule to be malformed or for `dateutil.rrule` to
    reject a combination of values. The expander catches this exception
    and skips only the task that owns the rule.
    """


class ScheduleError(TaskCalError):
    """Exception raised when schedule input for a task is invalid."""


class SeriesError(TaskCalError):
    """Exception raised when editing a task series is not possible."""
