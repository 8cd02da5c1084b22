"""Calendar helpers for warranty tracking."""

import calendar
import math
from datetime import date, datetime, time, timezone
from typing import Optional

from servicedesk.models.base import utcnow

SECONDS_PER_DAY = 24 * 60 * 60


def add_months(start: date, months: int) -> date:
    """Advance a date by whole calendar months.

    The day of month is kept where possible and clamped to the last day of the
    target month otherwise (2024-01-31 + 1 month -> 2024-02-29).
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def as_datetime(value: date) -> datetime:
    """Midnight at the start of the given date."""
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def warranty_status(expires_at: date, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return "ACTIVE" if as_datetime(expires_at) > now else "EXPIRED"


def warranty_days_remaining(expires_at: date, now: Optional[datetime] = None) -> int:
    """Whole days until expiry, rounded up, never negative."""
    now = now or utcnow()
    seconds = (as_datetime(expires_at) - now).total_seconds()
    return max(0, math.ceil(seconds / SECONDS_PER_DAY))


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
