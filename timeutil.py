"""Calendar-day bucketing in the reporting time zone.

Timestamps are stored as naive UTC. Every "which day was this?" question in
the engine (trend buckets, streaks, stats) goes through local_day() so the
answers agree with each other.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from flask import current_app


def utcnow() -> datetime:
    """Naive UTC now, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def reporting_zone(name: str | None = None):
    name = name or current_app.config.get("REPORTING_TIMEZONE", "UTC")
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def local_day(ts: datetime, tz=None) -> date:
    tz = tz or reporting_zone()
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(tz).date()


def today_local(tz=None) -> date:
    return local_day(utcnow(), tz)


def window_days(days: int, today: date) -> list[date]:
    """The N calendar days ending today, oldest first."""
    return [today - timedelta(days=days - 1 - i) for i in range(days)]


def day_start_utc(day: date, tz=None) -> datetime:
    """Naive UTC instant at which `day` begins in the reporting zone."""
    tz = tz or reporting_zone()
    local_midnight = datetime.combine(day, time.min).replace(tzinfo=tz)
    return local_midnight.astimezone(timezone.utc).replace(tzinfo=None)


def day_range_utc(first: date, last: date, tz=None) -> tuple[datetime, datetime]:
    """Half-open [start, end) naive UTC range covering first..last inclusive."""
    tz = tz or reporting_zone()
    return day_start_utc(first, tz), day_start_utc(last + timedelta(days=1), tz)
