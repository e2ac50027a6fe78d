"""Wall-clock access and interval arithmetic.

All datetimes handled by the core are naive UTC; ``to_utc`` normalises anything
else at the boundary.
"""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Protocol, Union

from dateutil import parser

from .errors import ValidationError

SECONDS_PER_HOUR = 3600


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, current: datetime) -> None:
        self.current = to_utc(current)

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> None:
        self.current = self.current + timedelta(**delta)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_instant(value: Union[str, datetime], field: str = "date") -> datetime:
    """Parse an ISO 8601 string (or pass a datetime through) into naive UTC."""

    if isinstance(value, datetime):
        return to_utc(value)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid {field}: expected an ISO 8601 timestamp")
    try:
        return to_utc(parser.isoparse(value))
    except (ValueError, OverflowError) as exc:
        raise ValidationError(f"Invalid {field}: {value!r}") from exc


def duration_hours(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / SECONDS_PER_HOUR


def billable_hours(start: datetime, end: datetime) -> int:
    """Duration rounded up to whole hours."""

    return math.ceil(duration_hours(start, end))


def ensure_window(start: datetime, end: datetime) -> None:
    if start >= end:
        raise ValidationError("End date must be after start date")
