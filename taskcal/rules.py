"""Evaluator for recurrence rule text.

This module is the only place the expander touches `dateutil.rrule`. It
parses rule text into a `Recur` and enumerates the instants that fall in a
half-open window. Parsed rules are cached by their text; `Recur` models are
frozen so a cached value may be shared between concurrent expansions.
"""

from __future__ import annotations

import datetime
import functools
import logging
from collections.abc import Iterator

from .exceptions import RecurrenceError
from .types.recur import Recur

__all__ = [
    "parse_rule",
    "occurrences_between",
]

_LOGGER = logging.getLogger(__name__)

RULE_CACHE_SIZE = 512


@functools.lru_cache(maxsize=RULE_CACHE_SIZE)
def parse_rule(rule: str) -> Recur:
    """Parse recurrence rule text, raising RecurrenceError when invalid."""
    try:
        return Recur.from_rrule(rule)
    except ValueError as err:
        raise RecurrenceError(
            f"Unable to parse recurrence rule {rule!r}: {err}"
        ) from err


def _iter_rule(
    recur: Recur,
    anchor: datetime.datetime,
    start: datetime.datetime,
    start_inclusive: bool,
) -> Iterator[datetime.datetime]:
    """Iterate over rule instants on or after the start of the window."""
    try:
        rule = recur.as_rrule(anchor)
        yield from rule.xafter(start, inc=start_inclusive)
    except (TypeError, ValueError) as err:
        raise RecurrenceError(
            f"Error evaluating recurrence rule ({recur.as_rrule_str()}) "
            f"at {anchor.isoformat()}: {err}"
        ) from err


def occurrences_between(
    rule: str | Recur,
    anchor: datetime.datetime,
    start: datetime.datetime,
    end: datetime.datetime,
    start_inclusive: bool = True,
    limit: int | None = None,
) -> list[datetime.datetime]:
    """Return the instants of a rule between start and end as UTC datetimes.

    The rule is anchored at `anchor`, which must be timezone aware. The
    anchor's timezone decides how wall clock time behaves: a UTC anchor
    repeats at the same absolute time, while a zoned anchor repeats at the
    same local time across daylight saving transitions. The end of the
    window is always exclusive. When `limit` is set, at most that many
    instants are returned.
    """
    if anchor.tzinfo is None:
        raise RecurrenceError(f"Recurrence anchor must be timezone aware: {anchor}")
    recur = parse_rule(rule) if isinstance(rule, str) else rule
    results: list[datetime.datetime] = []
    for value in _iter_rule(recur, anchor, start, start_inclusive):
        if value >= end:
            break
        if limit is not None and len(results) >= limit:
            _LOGGER.warning(
                "Recurrence rule %s produced more than %d instants before %s; truncating",
                recur.as_rrule_str(),
                limit,
                end.isoformat(),
            )
            break
        results.append(value.astimezone(datetime.UTC))
    return results
