"""Public announcement banners.

Routes:
- GET /api/announcements?placement=dashboard|landing
"""

from __future__ import annotations

from datetime import datetime

from flask import Blueprint, jsonify, request
from sqlalchemy import and_, or_

from errors import ValidationError, store_guard
from extensions import limiter
from models_announcements import Announcement
from timeutil import utcnow


announcements_api = Blueprint("announcements_api", __name__)

PLACEMENTS = {
    "dashboard": Announcement.show_on_dashboard,
    "landing": Announcement.show_on_landing,
}


def active_filter(now: datetime):
    return and_(
        Announcement.is_active.is_(True),
        or_(Announcement.starts_at.is_(None), Announcement.starts_at <= now),
        or_(Announcement.ends_at.is_(None), Announcement.ends_at >= now),
    )


def active_announcements(placement: str = "dashboard", now: datetime | None = None) -> list[Announcement]:
    if placement not in PLACEMENTS:
        raise ValidationError(f"placement must be one of: {', '.join(PLACEMENTS)}")
    now = now or utcnow()
    with store_guard("announcement list"):
        return (
            Announcement.query.filter(active_filter(now), PLACEMENTS[placement].is_(True))
            .order_by(Announcement.created_at.desc(), Announcement.id.desc())
            .all()
        )


@announcements_api.get("/api/announcements")
@limiter.limit("120 per minute")
def list_active_announcements():
    placement = (request.args.get("placement") or "dashboard").strip().lower()
    anns = active_announcements(placement)
    return jsonify({"success": True, "announcements": [a.to_dict() for a in anns]})
