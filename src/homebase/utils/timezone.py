"""Timezone utilities for Homebase.

All timestamps are stored as UTC. Calendar-day questions (is this due today?
was this completed this week?) are answered in the family's local timezone.
"""

from datetime import UTC, date, datetime, timedelta


def now_utc() -> datetime:
    """Get current time as timezone-aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Ensure datetime is timezone-aware and in UTC.

    Args:
        dt: A datetime that may be naive or timezone-aware.

    Returns:
        datetime: Timezone-aware datetime in UTC.

    Note:
        Naive datetimes are assumed to be UTC. SQLite hands back naive
        values for columns written as aware UTC, so everything read from
        the store passes through here.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def local_date(dt: datetime, reference: datetime) -> date:
    """Calendar date of ``dt`` as seen from ``reference``'s timezone."""
    tz = reference.tzinfo or UTC
    return ensure_utc(dt).astimezone(tz).date()


def week_bounds(day: date) -> tuple[date, date]:
    """Monday and Sunday of the week containing ``day``."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)
