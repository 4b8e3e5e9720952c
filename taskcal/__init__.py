"""A library for expanding planner tasks into calendar occurrences.

Tasks are one-off or recurring (RFC 5545 recurrence rules) and individual
occurrences may be edited, cancelled or completed with exceptions. The
`taskcal.expander` module computes the occurrences within a window of time
for display on calendar views.
"""

__all__ = [
    "exceptions",
    "expander",
    "instance",
    "iter",
    "rules",
    "schedule",
    "series",
    "task",
    "task_exception",
    "timeline",
    "timespan",
    "types",
    "util",
]
