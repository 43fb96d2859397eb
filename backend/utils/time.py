"""Time-related utility functions."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def minutes_between(start: datetime, end: datetime) -> int:
    """Signed whole minutes from start to end, rounded to the nearest minute."""
    return round((end - start).total_seconds() / 60)


def week_start(day: date) -> date:
    """Monday of the ISO week containing day."""
    return day - timedelta(days=day.weekday())


def iso_week_key(day: date) -> tuple[int, int]:
    """(ISO year, ISO week number) for day."""
    iso = day.isocalendar()
    return iso[0], iso[1]


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat a naive timestamp as UTC so it compares with aware ones."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
