"""Annotated pydantic field types for instants."""

from __future__ import annotations

import datetime
from typing import Annotated, Optional

from pydantic import BeforeValidator, PlainSerializer

from ..util import instant_key, normalize_instant, parse_optional_instant

__all__ = ["Instant", "OptionalInstant"]


Instant = Annotated[
    datetime.datetime,
    BeforeValidator(normalize_instant),
    PlainSerializer(instant_key, return_type=str, when_used="json"),
]
"""An aware UTC datetime, parsed from ISO 8601 text when needed."""

OptionalInstant = Annotated[
    Optional[datetime.datetime],
    BeforeValidator(parse_optional_instant),
    PlainSerializer(
        lambda value: instant_key(value) if value is not None else None,
        return_type=Optional[str],
        when_used="json",
    ),
]
"""An optional `Instant`, where an empty string is treated as unset."""
