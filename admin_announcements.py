"""Admin announcement management.

Routes:
- GET    /api/admin/announcements
- POST   /api/admin/announcements         {title, message, type, is_active, show_on_dashboard, show_on_landing, starts_at, ends_at}
- PATCH  /api/admin/announcements/<id>    (any subset of the create fields)
- DELETE /api/admin/announcements/<id>
"""

from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, jsonify, request

from errors import NotFoundError, ValidationError, store_guard
from extensions import db
from identity import AuditedResult, admin_required, privileged
from models_announcements import ANNOUNCEMENT_TYPES, Announcement


admin_announcements = Blueprint("admin_announcements", __name__)

BOOL_FIELDS = ("is_active", "show_on_dashboard", "show_on_landing")


def parse_dt(v, field: str):
    if v is None:
        return None
    if not isinstance(v, str):
        raise ValidationError(f"{field} must be an ISO date or datetime")
    v = v.strip()
    if not v:
        return None
    # Accept either ISO datetime or YYYY-MM-DD
    try:
        dt = datetime.fromisoformat(v)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date or datetime")
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _text(d: dict, field: str, max_len: int) -> str:
    value = d.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    value = value.strip()
    if len(value) > max_len:
        raise ValidationError(f"{field} must be at most {max_len} characters")
    return value


def _apply_fields(a: Announcement, d: dict, partial: bool) -> None:
    if not partial or "title" in d:
        a.title = _text(d, "title", 255)
    if not partial or "message" in d:
        a.message = _text(d, "message", 5000)
    if not partial or "type" in d:
        a_type = d.get("type") or "info"
        if not isinstance(a_type, str) or a_type.strip().lower() not in ANNOUNCEMENT_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(ANNOUNCEMENT_TYPES)}")
        a.type = a_type.strip().lower()
    for field in BOOL_FIELDS:
        if field in d:
            if not isinstance(d[field], bool):
                raise ValidationError(f"{field} must be true or false")
            setattr(a, field, d[field])
    if not partial or "starts_at" in d:
        a.starts_at = parse_dt(d.get("starts_at"), "starts_at")
    if not partial or "ends_at" in d:
        a.ends_at = parse_dt(d.get("ends_at"), "ends_at")
    if a.starts_at and a.ends_at and a.ends_at < a.starts_at:
        raise ValidationError("ends_at must not be before starts_at")


def _get_announcement(aid: int) -> Announcement:
    with store_guard("announcement lookup"):
        a = db.session.get(Announcement, aid)
    if a is None:
        raise NotFoundError("Announcement not found")
    return a


@admin_announcements.get("/api/admin/announcements")
@admin_required
def list_announcements():
    with store_guard("announcement list"):
        anns = Announcement.query.order_by(Announcement.created_at.desc(), Announcement.id.desc()).all()
    return jsonify({"success": True, "announcements": [a.to_dict() for a in anns]})


@admin_announcements.post("/api/admin/announcements")
@privileged("announcement.create", target_type="announcement")
def create_announcement(admin):
    d = request.get_json(silent=True) or {}

    a = Announcement(
        is_active=True,
        show_on_dashboard=True,
        show_on_landing=False,
        created_by=admin.id,
    )
    _apply_fields(a, d, partial=False)

    with store_guard("announcement create"):
        db.session.add(a)
        db.session.commit()

    return AuditedResult(
        payload={"announcement": a.to_dict()},
        target_id=str(a.id),
        target_name=a.title,
        status=201,
    )


@admin_announcements.patch("/api/admin/announcements/<int:aid>")
@privileged("announcement.update", target_type="announcement")
def update_announcement(admin, aid: int):
    d = request.get_json(silent=True)
    if not isinstance(d, dict) or not d:
        raise ValidationError("JSON body with at least one field required")

    a = _get_announcement(aid)
    previous_title = a.title
    try:
        _apply_fields(a, d, partial=True)
    except ValidationError:
        db.session.rollback()
        raise

    with store_guard("announcement update"):
        db.session.commit()

    return AuditedResult(
        payload={"announcement": a.to_dict()},
        target_id=str(aid),
        target_name=previous_title,
        details={"fields": sorted(k for k in d if k in Announcement.__table__.columns)},
    )


@admin_announcements.delete("/api/admin/announcements/<int:aid>")
@privileged("announcement.delete", target_type="announcement")
def delete_announcement(admin, aid: int):
    a = _get_announcement(aid)
    title = a.title

    with store_guard("announcement delete"):
        db.session.delete(a)
        db.session.commit()

    return AuditedResult(payload={"deleted": aid}, target_id=str(aid), target_name=title)
