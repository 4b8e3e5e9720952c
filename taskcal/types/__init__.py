"""Value types shared by taskcal models."""

from .fields import Instant, OptionalInstant
from .recur import Frequency, Recur, Weekday, WeekdayValue

__all__ = [
    "Frequency",
    "Instant",
    "OptionalInstant",
    "Recur",
    "Weekday",
    "WeekdayValue",
]
