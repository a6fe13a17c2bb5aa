"""
Date and time helpers shared by the engine calculators.

Conventions:
  - Stored activity ``end_date`` values are calendar dates; they are anchored
    at midnight UTC whenever they are compared against timestamps.
  - Naive datetimes are treated as UTC.
  - Whole-day differences are floored, so 23 hours after a date is day 0 and
    one hour before it is day -1.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def today_utc() -> date:
    """Return today's date in UTC."""
    return utcnow().date()


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime; convert an aware one to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_db_timestamp(value: Optional[datetime]) -> Optional[str]:
    """UTC ISO-8601 text with fixed microsecond precision, or ``None``.

    Every stored timestamp uses this form, so ordering by the TEXT column is
    chronological order.
    """
    if value is None:
        return None
    return as_utc(value).isoformat(timespec="microseconds")


def start_of_day_utc(day: date) -> datetime:
    """Midnight UTC at the start of ``day``."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def whole_days_between(start: date, end: datetime) -> int:
    """Floored number of days from midnight UTC of ``start`` to ``end``.

    Args:
        start: Calendar date (e.g. an activity end date).
        end: Timestamp (e.g. an uptake opportunity creation time).

    Returns:
        ``floor((end - start) / 1 day)``; negative when ``end`` is earlier.
    """
    # timedelta normalises so that .days is already the floor.
    return (as_utc(end) - start_of_day_utc(start)).days


def months_before(reference: date, months: int) -> date:
    """Same calendar day ``months`` months earlier, clamped to the month end.

    Example: ``months_before(date(2024, 5, 31), 3)`` → ``date(2024, 2, 29)``.

    Raises:
        ValueError: If ``months`` is negative.
    """
    if months < 0:
        raise ValueError(f"months must be >= 0, got {months}.")
    month_index = reference.year * 12 + (reference.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(reference.day, last_day))
