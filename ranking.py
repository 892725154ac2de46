"""Leaderboard ranking.

Order: score descending, then earliest join, then user id. Positions are
1-based with no shared ranks. Every page is cut from one snapshot read of the
ranked users, so pages of the same request can never disagree.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import NamedTuple

from flask import current_app

from errors import NotFoundError, ValidationError, store_guard
from extensions import db
from models_activity import ActivityEvent
from models_users import USER_STATUS_ACTIVE, USER_STATUS_DELETED, User
from timeutil import day_range_utc, local_day, reporting_zone, today_local


class ScoreRow(NamedTuple):
    user_id: str
    score: int
    joined_at: object
    username: str
    display_name: str | None
    avatar_url: str | None


def sort_key(row: ScoreRow):
    return (-int(row.score or 0), row.joined_at, str(row.user_id))


def rank_users(rows) -> list[tuple[int, ScoreRow]]:
    """Pure: same rows in, same (rank, row) list out, whatever the input order."""
    ordered = sorted(rows, key=sort_key)
    return [(position, row) for position, row in enumerate(ordered, start=1)]


def _ranked_filter(q):
    return q.filter(
        User.deleted_at.is_(None),
        User.is_suspended.is_(False),
        User.show_on_leaderboard.is_(True),
    )


def load_snapshot() -> list[ScoreRow]:
    """All ranked users' scores in a single query."""
    with store_guard("leaderboard snapshot"):
        rows = _ranked_filter(
            db.session.query(
                User.id, User.xp, User.created_at, User.username, User.display_name, User.avatar_url
            )
        ).all()
    return [ScoreRow(*r) for r in rows]


def streak_length(active_days, today: date) -> int:
    """Consecutive active days ending today, or ending yesterday if today is empty."""
    days = set(active_days)
    if today in days:
        cursor = today
    elif today - timedelta(days=1) in days:
        cursor = today - timedelta(days=1)
    else:
        return 0
    n = 0
    while cursor in days:
        n += 1
        cursor -= timedelta(days=1)
    return n


def load_streaks(user_ids, today: date | None = None) -> dict[str, int]:
    user_ids = [str(u) for u in user_ids]
    if not user_ids:
        return {}
    tz = reporting_zone()
    today = today or today_local(tz)
    lookback = int(current_app.config.get("STREAK_LOOKBACK_DAYS", 366))
    start, end = day_range_utc(today - timedelta(days=lookback - 1), today, tz)

    with store_guard("streak lookup"):
        rows = (
            db.session.query(ActivityEvent.user_id, ActivityEvent.created_at)
            .filter(ActivityEvent.user_id.in_(user_ids))
            .filter(ActivityEvent.created_at >= start, ActivityEvent.created_at < end)
            .all()
        )

    days_by_user: dict[str, set] = {uid: set() for uid in user_ids}
    for uid, ts in rows:
        days_by_user[str(uid)].add(local_day(ts, tz))
    return {uid: streak_length(days, today) for uid, days in days_by_user.items()}


def _entry(rank: int, row: ScoreRow, streak: int) -> dict:
    return {
        "rank": rank,
        "user_id": row.user_id,
        "username": row.username,
        "display_name": row.display_name,
        "avatar_url": row.avatar_url,
        "score": int(row.score or 0),
        "streak": streak,
    }


def get_leaderboard(offset: int, limit: int, today: date | None = None) -> dict:
    max_limit = int(current_app.config.get("LEADERBOARD_MAX_LIMIT", 100))
    if offset < 0:
        raise ValidationError("offset must be >= 0")
    if limit < 1 or limit > max_limit:
        raise ValidationError(f"limit must be between 1 and {max_limit}")

    ranked = rank_users(load_snapshot())
    window = ranked[offset:offset + limit]
    streaks = load_streaks([row.user_id for _, row in window], today)

    return {
        "entries": [_entry(rank, row, streaks.get(str(row.user_id), 0)) for rank, row in window],
        "total": len(ranked),
        "offset": offset,
        "limit": limit,
    }


def get_user_entry(user_id: str, today: date | None = None) -> dict:
    """One user's leaderboard entry.

    Unknown, deleted, suspended and hidden users are all NotFound, with the
    status carried along so callers can tell suspension from absence.
    """
    with store_guard("leaderboard user lookup"):
        user = db.session.get(User, str(user_id))
    if user is None:
        raise NotFoundError("User not found", status="unknown")
    status = user.status
    if status == USER_STATUS_DELETED:
        raise NotFoundError("User not found", status="unknown")
    if status != USER_STATUS_ACTIVE:
        raise NotFoundError("User is not ranked", status=status)

    for rank, row in rank_users(load_snapshot()):
        if str(row.user_id) == str(user.id):
            streak = load_streaks([row.user_id], today).get(str(row.user_id), 0)
            return _entry(rank, row, streak)
    # Became unranked between the two reads.
    raise NotFoundError("User is not ranked", status="unknown")
