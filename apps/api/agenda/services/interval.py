"""Half-open interval arithmetic for provider schedules.

`overlaps` is the only overlap predicate in the codebase: blocks,
appointments and cross-kind checks all go through it.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import NamedTuple

from agenda.services.schedule_errors import InvalidIntervalError


class Interval(NamedTuple):
    """Half-open time interval [start, end)."""
    start: datetime
    end: datetime


def as_utc(value: datetime) -> datetime:
    """Return value as aware UTC; naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_interval(start: datetime, end: datetime) -> Interval:
    """Normalize to UTC and reject empty or inverted intervals."""
    start = as_utc(start)
    end = as_utc(end)
    if start >= end:
        raise InvalidIntervalError("start_at must be before end_at")
    return Interval(start, end)


def overlaps(a: Interval, b: Interval) -> bool:
    """True when the two half-open intervals share any instant.

    Touching endpoints ([10, 11) and [11, 12)) do not overlap.
    """
    return a.start < b.end and b.start < a.end


def widen(interval: Interval, minutes: int) -> Interval:
    """Pad an interval on both sides."""
    if minutes <= 0:
        return interval
    pad = timedelta(minutes=minutes)
    return Interval(interval.start - pad, interval.end + pad)


def day_window(day: date) -> Interval:
    """UTC calendar day [day 00:00, day+1 00:00)."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return Interval(start, start + timedelta(days=1))
