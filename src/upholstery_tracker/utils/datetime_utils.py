"""Datetime utilities for UTC timestamps and calendar-month arithmetic.

SQLite drops timezone information on storage, so timestamps read back from the
database are naive. All comparisons in the ledger engines happen on naive UTC
values produced by ``to_naive_utc``.

Usage:
    from upholstery_tracker.utils.datetime_utils import utc_now_naive, same_month

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now_naive)
"""

import calendar
import math
from datetime import datetime, timezone
from typing import Optional, Tuple


def utc_now_naive() -> datetime:
    """Return current UTC time without tzinfo, as SQLite stores it.

    Used for SQLAlchemy Column defaults so that freshly flushed objects and
    objects loaded from the database compare consistently.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to naive UTC.

    Aware values are converted to UTC and stripped; naive values are assumed
    to already be UTC and returned unchanged.
    """
    if value is None:
        return None
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def previous_month(year: int, month: int) -> Tuple[int, int]:
    """Return (year, month) of the calendar month before the given one."""
    if month == 1:
        return year - 1, 12
    return year, month - 1


def days_in_month(year: int, month: int) -> int:
    """Return the number of days in a calendar month."""
    return calendar.monthrange(year, month)[1]


def same_month(value: Optional[datetime], year: int, month: int) -> bool:
    """Check whether a timestamp falls inside the given calendar month."""
    if value is None:
        return False
    return value.year == year and value.month == month


def age_in_days(created_at: Optional[datetime], now: datetime, unknown: int) -> int:
    """Whole days (rounded up) between creation and now.

    Args:
        created_at: Creation timestamp, naive UTC, or None
        now: Reference timestamp, naive UTC
        unknown: Value returned when created_at is None

    Returns:
        Age in days
    """
    if created_at is None:
        return unknown
    delta = abs((now - created_at).total_seconds())
    return math.ceil(delta / 86400)
