"""Activity ingestion.

Routes:
- POST /api/activity  {kind, weight?}   (authenticated; records one event for the caller)

Each event lands in activity_events and adds its weight to users.xp in the
same transaction. The XP change is an `xp = xp + :w` UPDATE so concurrent
syncs for one user never overwrite each other.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from sqlalchemy import text

from errors import NotFoundError, ValidationError, store_guard
from extensions import db, limiter
from identity import require_user
from models_activity import EVENT_WEIGHTS, ActivityEvent
from timeutil import utcnow


logger = logging.getLogger(__name__)

activity_api = Blueprint("activity_api", __name__)


def _resolve_weight(kind: str, weight) -> int:
    if weight is None:
        return EVENT_WEIGHTS[kind]
    if isinstance(weight, bool):
        raise ValidationError("weight must be a non-negative integer")
    try:
        weight = int(weight)
    except (TypeError, ValueError):
        raise ValidationError("weight must be a non-negative integer")
    if weight < 0:
        raise ValidationError("weight must be a non-negative integer")
    return weight


def record_activity(user_id: str, kind: str, weight=None) -> ActivityEvent:
    kind = (kind or "").strip().lower()
    if kind not in EVENT_WEIGHTS:
        raise ValidationError(f"kind must be one of: {', '.join(sorted(EVENT_WEIGHTS))}")
    weight = _resolve_weight(kind, weight)
    now = utcnow()

    with store_guard("activity record"):
        res = db.session.execute(
            text(
                """
                UPDATE users
                SET xp = xp + :w,
                    last_active = :now
                WHERE id = :uid AND deleted_at IS NULL
                """
            ),
            {"w": weight, "now": now, "uid": str(user_id)},
        )
        if res.rowcount == 0:
            db.session.rollback()
            raise NotFoundError("User not found")

        event = ActivityEvent(user_id=str(user_id), kind=kind, weight=weight, created_at=now)
        db.session.add(event)
        db.session.commit()

    logger.debug("activity recorded user=%s kind=%s weight=%s", user_id, kind, weight)
    return event


@activity_api.post("/api/activity")
@limiter.limit("120 per minute")
def api_record_activity():
    user = require_user()
    data = request.get_json(silent=True) or {}
    event = record_activity(user.id, data.get("kind"), data.get("weight"))

    row = db.session.execute(text("SELECT xp FROM users WHERE id = :uid"), {"uid": user.id}).first()
    return jsonify({"success": True, "event": event.to_dict(), "xp": int(row[0]) if row else 0}), 201
