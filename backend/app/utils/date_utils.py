# backend/app/utils/date_utils.py
"""
Datetime utility functions for the Inventory Value Tracker.

All persisted timestamps are UTC. SQLite drops tzinfo on the way in and
returns naive datetimes on the way out, so every comparison goes through
ensure_utc() first.

Usage:
    from app.utils.date_utils import utc_now, ensure_utc

    age = utc_now() - ensure_utc(snapshot.taken_at)
"""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to timezone-aware UTC.

    Naive datetimes are assumed to already be in UTC (that is how they are
    stored); aware datetimes are converted.

    Example:
        >>> ensure_utc(datetime(2024, 1, 1, 12, 0))
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def history_lower_bound(now: datetime, days: int | None) -> datetime | None:
    """
    Lower bound for a valuation time series.

    Args:
        now: Reference time
        days: Lookback in days, or None for the full history

    Returns:
        UTC datetime `days` before `now`, or None when unbounded
    """
    if days is None:
        return None
    return ensure_utc(now) - timedelta(days=days)
