"""Admin user management.

Routes:
- GET    /api/admin/users?page&limit&search&status&sortBy&sortOrder
- GET    /api/admin/users/<id>?days=30
- PATCH  /api/admin/users/<id>          {"action": "suspend" | "unsuspend", "reason": "..."}
- DELETE /api/admin/users/<id>?permanent=true|false
- POST   /api/admin/users/<id>/xp       {"amount": 50, "reason": "..."}

Every mutation goes through identity.privileged, which writes the audit entry.
"""

from __future__ import annotations

import math

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import or_, text

import trends
from errors import NotFoundError, ValidationError, parse_int_arg, store_guard, validate_page
from extensions import db
from identity import AuditedResult, admin_required, privileged
from models_activity import ActivityEvent
from models_sharing import SharingCard
from models_users import User
from timeutil import utcnow


admin_users = Blueprint("admin_users", __name__)

SORT_COLUMNS = {
    "created_at": User.created_at,
    "xp": User.xp,
    "username": User.username,
    "display_name": User.display_name,
    "last_active": User.last_active,
}
STATUS_FILTERS = ("all", "active", "suspended")


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_users(page: int, limit: int, search: str = "", status: str = "all",
               sort_by: str = "created_at", sort_order: str = "desc") -> dict:
    if status not in STATUS_FILTERS:
        raise ValidationError(f"status must be one of: {', '.join(STATUS_FILTERS)}")
    if sort_by not in SORT_COLUMNS:
        raise ValidationError(f"sortBy must be one of: {', '.join(SORT_COLUMNS)}")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sortOrder must be asc or desc")

    q = User.query.filter(User.deleted_at.is_(None))
    if search:
        pattern = f"%{_escape_like(search)}%"
        q = q.filter(
            or_(
                User.username.ilike(pattern, escape="\\"),
                User.display_name.ilike(pattern, escape="\\"),
                User.email.ilike(pattern, escape="\\"),
            )
        )
    if status == "active":
        q = q.filter(User.is_suspended.is_(False))
    elif status == "suspended":
        q = q.filter(User.is_suspended.is_(True))

    column = SORT_COLUMNS[sort_by]
    order = column.asc() if sort_order == "asc" else column.desc()
    # id as tiebreaker so consecutive pages never overlap
    tiebreak = User.id.asc() if sort_order == "asc" else User.id.desc()

    with store_guard("admin user list"):
        total = q.count()
        rows = q.order_by(order, tiebreak).offset((page - 1) * limit).limit(limit).all()

    return {
        "users": [u.to_dict() for u in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


def _get_live_user(user_id: str) -> User:
    with store_guard("admin user lookup"):
        user = db.session.get(User, user_id)
    if user is None or user.deleted_at is not None:
        raise NotFoundError("User not found")
    return user


@admin_users.get("/api/admin/users")
@admin_required
def api_admin_list_users():
    page = parse_int_arg(request.args, "page", 1)
    limit = parse_int_arg(request.args, "limit", current_app.config["ADMIN_USERS_DEFAULT_LIMIT"])
    validate_page(page, limit, current_app.config["ADMIN_USERS_MAX_LIMIT"])

    result = list_users(
        page,
        limit,
        search=(request.args.get("search") or "").strip(),
        status=(request.args.get("status") or "all").strip().lower(),
        sort_by=(request.args.get("sortBy") or "created_at").strip(),
        sort_order=(request.args.get("sortOrder") or "desc").strip().lower(),
    )
    return jsonify({"success": True, **result})


@admin_users.get("/api/admin/users/<user_id>")
@admin_required
def api_admin_get_user(user_id: str):
    days = trends.validate_days(parse_int_arg(request.args, "days", current_app.config["TREND_DEFAULT_DAYS"]))
    with store_guard("admin user lookup"):
        user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    activity = trends.get_trend(trends.METRIC_ACTIVITY, days, user_id=user.id)
    return jsonify({"success": True, "user": user.to_dict(), "activity": activity})


@admin_users.patch("/api/admin/users/<user_id>")
@privileged("user.update")
def api_admin_update_user(admin, user_id: str):
    data = request.get_json(silent=True) or {}
    action = (data.get("action") or "").strip().lower()
    reason = (data.get("reason") or "").strip() or None

    if action not in ("suspend", "unsuspend"):
        raise ValidationError("action must be suspend or unsuspend")

    user = _get_live_user(user_id)
    if user.id == admin.id:
        raise ValidationError("Cannot suspend or unsuspend your own account")

    if action == "suspend":
        user.is_suspended = True
        user.suspended_at = utcnow()
        user.suspended_reason = reason
        details = {"reason": reason}
    else:
        user.is_suspended = False
        user.suspended_at = None
        user.suspended_reason = None
        details = {}

    with store_guard(f"user {action}"):
        db.session.commit()

    return AuditedResult(
        payload={"user": user.to_dict()},
        action=f"user.{action}",
        target_id=user.id,
        target_name=user.username,
        details=details,
    )


@admin_users.delete("/api/admin/users/<user_id>")
@privileged("user.delete")
def api_admin_delete_user(admin, user_id: str):
    permanent = (request.args.get("permanent") or "").strip().lower() == "true"

    user = _get_live_user(user_id)
    if user.id == admin.id:
        raise ValidationError("Cannot delete your own account")
    target_id, target_name = user.id, user.username

    with store_guard("user delete"):
        if permanent:
            ActivityEvent.query.filter_by(user_id=target_id).delete(synchronize_session=False)
            SharingCard.query.filter_by(user_id=target_id).delete(synchronize_session=False)
            db.session.delete(user)
        else:
            user.deleted_at = utcnow()
        db.session.commit()

    return AuditedResult(
        payload={"deleted": target_id, "permanent": permanent},
        target_id=target_id,
        target_name=target_name,
        details={"permanent": permanent},
    )


@admin_users.post("/api/admin/users/<user_id>/xp")
@privileged("user.xp_adjust")
def api_admin_adjust_xp(admin, user_id: str):
    data = request.get_json(silent=True) or {}
    amount = data.get("amount")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
        raise ValidationError("amount must be a non-zero integer")
    reason = (data.get("reason") or "").strip() or None

    user = _get_live_user(user_id)
    target_name = user.username

    with store_guard("xp adjust"):
        res = db.session.execute(
            text(
                """
                UPDATE users
                SET xp = xp + :amt
                WHERE id = :uid AND deleted_at IS NULL AND xp + :amt >= 0
                """
            ),
            {"amt": amount, "uid": user_id},
        )
        if res.rowcount == 0:
            db.session.rollback()
            still_live = db.session.execute(
                text("SELECT 1 FROM users WHERE id = :uid AND deleted_at IS NULL"), {"uid": user_id}
            ).first()
            if still_live is None:
                raise NotFoundError("User not found")
            raise ValidationError("xp cannot go below zero")
        db.session.commit()
        xp = db.session.execute(text("SELECT xp FROM users WHERE id = :uid"), {"uid": user_id}).scalar()

    return AuditedResult(
        payload={"user_id": user_id, "xp": int(xp or 0)},
        target_id=user_id,
        target_name=target_name,
        details={"amount": amount, "reason": reason},
    )
