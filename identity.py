"""Caller identity and admin authorization.

Identity comes from the external session provider: either `user_id` in the
Flask session, or (behind an auth proxy) the TRUSTED_IDENTITY_HEADER request
header. Privileged mutations are wrapped with @privileged so the admin check
and the audit append cannot be forgotten per endpoint.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import wraps

from flask import current_app, g, jsonify, request, session as flask_session

import audit_log
from errors import AuditLogError, ForbiddenError, PartialFailure, UnauthorizedError, store_guard
from extensions import db
from models_users import User


logger = logging.getLogger(__name__)


def current_user_id() -> str | None:
    header = current_app.config.get("TRUSTED_IDENTITY_HEADER")
    if header:
        value = (request.headers.get(header) or "").strip()
        if value:
            return value
    uid = flask_session.get("user_id")
    return str(uid) if uid else None


def require_identity() -> str:
    uid = current_user_id()
    if not uid:
        raise UnauthorizedError("Authentication required")
    return uid


def require_user() -> User:
    """Resolve the caller to a live, non-suspended account."""
    uid = require_identity()
    with store_guard("identity lookup"):
        user = db.session.get(User, uid)
    if user is None or user.deleted_at is not None:
        raise UnauthorizedError("Unknown identity")
    if user.is_suspended:
        raise ForbiddenError("Account suspended")
    return user


def require_admin() -> User:
    uid = require_identity()
    with store_guard("admin lookup"):
        user = db.session.get(User, uid)
    if user is None or user.deleted_at is not None or user.is_suspended or not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user


def admin_required(fn):
    """Read-only admin endpoints: authorization only, nothing to audit."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        g.admin = require_admin()
        return fn(*args, **kwargs)

    return wrapper


@dataclass
class AuditedResult:
    """What a privileged view returns to @privileged.

    `action` overrides the decorator's action when one endpoint performs
    several kinds of mutation (suspend / unsuspend).
    """

    payload: dict
    target_id: str | None = None
    target_name: str | None = None
    details: dict = field(default_factory=dict)
    action: str | None = None
    target_type: str | None = None
    status: int = 200


def privileged(action: str, target_type: str = "user"):
    """Admin check + mutation + audit append, in that order.

    The wrapped view receives the acting admin as its first argument and must
    commit its own work before returning an AuditedResult. Success is only
    reported once the audit entry is written; if the append fails after the
    mutation committed, the caller gets a PartialFailure.
    """

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            admin = require_admin()
            g.admin = admin
            result: AuditedResult = fn(admin, *args, **kwargs)
            logged_action = result.action or action
            try:
                audit_log.append(
                    admin,
                    logged_action,
                    target_type=result.target_type or target_type,
                    target_id=result.target_id,
                    target_name=result.target_name,
                    details=result.details,
                )
            except AuditLogError as e:
                logger.error("action %s on %s completed without audit entry", logged_action, result.target_id)
                raise PartialFailure(
                    f"{logged_action} completed but the audit log entry could not be written",
                    action=logged_action,
                    target_id=result.target_id,
                ) from e
            body = {"success": True}
            body.update(result.payload)
            return jsonify(body), result.status

        return wrapper

    return decorator
