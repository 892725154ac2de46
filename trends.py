"""Trend aggregation: daily series over the last N days.

Series are recomputed per request from the users/activity tables. Every
requested day appears exactly once, zero-filled, oldest first.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, timedelta

from flask import current_app
from sqlalchemy import func

from errors import ValidationError, store_guard
from extensions import db
from models_activity import ActivityEvent
from models_users import User
from timeutil import day_range_utc, local_day, reporting_zone, today_local, utcnow, window_days


METRIC_SIGNUPS = "signups"
METRIC_ACTIVITY = "activity"
METRICS = (METRIC_SIGNUPS, METRIC_ACTIVITY)


def validate_days(days) -> int:
    max_days = int(current_app.config.get("TREND_MAX_DAYS", 365))
    if isinstance(days, bool) or not isinstance(days, int):
        raise ValidationError("days must be an integer")
    if days < 1 or days > max_days:
        raise ValidationError(f"days must be between 1 and {max_days}")
    return days


def _timestamps(metric: str, start, end, user_id: str | None = None) -> list:
    if metric == METRIC_SIGNUPS:
        column = User.created_at
        q = db.session.query(column).filter(User.deleted_at.is_(None))
    elif metric == METRIC_ACTIVITY:
        column = ActivityEvent.created_at
        q = db.session.query(column)
        if user_id:
            q = q.filter(ActivityEvent.user_id == user_id)
    else:
        raise ValidationError(f"metric must be one of: {', '.join(METRICS)}")

    rows = q.filter(column >= start, column < end).all()
    return [r[0] for r in rows]


def bucket_by_day(timestamps, tz=None) -> Counter:
    tz = tz or reporting_zone()
    return Counter(local_day(ts, tz) for ts in timestamps)


def get_trend(metric: str, days: int, today: date | None = None, user_id: str | None = None) -> list[dict]:
    """Return `days` points for `metric`; point i is today - (days - 1 - i).

    `user_id` narrows the activity metric to one user and is rejected for
    signups. Raises ValidationError for a bad window and TransientError when
    the store cannot be read (never an all-zero series in that case).
    """
    validate_days(days)
    if metric not in METRICS:
        raise ValidationError(f"metric must be one of: {', '.join(METRICS)}")
    if user_id and metric != METRIC_ACTIVITY:
        raise ValidationError("user_id only applies to the activity metric")

    tz = reporting_zone()
    today = today or today_local(tz)
    span = window_days(days, today)
    start, end = day_range_utc(span[0], span[-1], tz)

    with store_guard(f"{metric} trend"):
        counts = bucket_by_day(_timestamps(metric, start, end, user_id), tz)

    return [{"date": d.isoformat(), "count": int(counts.get(d, 0))} for d in span]


def get_admin_stats(today: date | None = None) -> dict:
    """Headline counters for the admin dashboard."""
    tz = reporting_zone()
    today = today or today_local(tz)
    today_start, _ = day_range_utc(today, today, tz)
    week_start, _ = day_range_utc(today - timedelta(days=6), today, tz)
    month_start, _ = day_range_utc(today - timedelta(days=29), today, tz)
    active_since = utcnow() - timedelta(days=7)

    live = User.query.filter(User.deleted_at.is_(None))

    with store_guard("admin stats"):
        kinds = dict(
            db.session.query(ActivityEvent.kind, func.count(ActivityEvent.id))
            .group_by(ActivityEvent.kind)
            .all()
        )
        stats = {
            "total_users": live.count(),
            "active_users": live.filter(User.last_active >= active_since).count(),
            "suspended_users": live.filter(User.is_suspended.is_(True)).count(),
            "signups_today": live.filter(User.created_at >= today_start).count(),
            "signups_week": live.filter(User.created_at >= week_start).count(),
            "signups_month": live.filter(User.created_at >= month_start).count(),
        }

    stats["total_events"] = int(sum(kinds.values()))
    stats["total_commits"] = int(kinds.get("commit", 0))
    stats["total_prs"] = int(kinds.get("pull_request", 0))
    return stats
