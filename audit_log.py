"""Admin audit trail: append one entry, query newest first."""

from __future__ import annotations

import json
import logging
import math

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from errors import AuditLogError, store_guard, validate_page
from extensions import db
from models_admin_logs import AdminLogEntry


logger = logging.getLogger(__name__)


def append(admin, action: str, target_type: str | None = None, target_id: str | None = None,
           target_name: str | None = None, details: dict | None = None) -> AdminLogEntry:
    """Write one immutable entry in its own transaction.

    Either the row is committed or nothing is; failures raise AuditLogError.
    """
    try:
        details_json = json.dumps(details or {}, separators=(",", ":"), ensure_ascii=False, default=str)
    except (TypeError, ValueError) as e:
        raise AuditLogError(f"Audit details are not serializable: {e}") from e

    entry = AdminLogEntry(
        admin_id=str(admin.id),
        admin_username=admin.username,
        action=action,
        target_type=target_type,
        target_id=str(target_id) if target_id is not None else None,
        target_name=target_name,
        details_json=details_json,
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("audit append failed action=%s admin=%s: %s", action, admin.id, e)
        raise AuditLogError("Failed to write audit log entry") from e
    return entry


def query(page: int, limit: int, action: str | None = None, admin_id: str | None = None) -> dict:
    """Paginated read, newest first. A page past the end is an empty list."""
    validate_page(page, limit, int(current_app.config.get("AUDIT_LOG_MAX_LIMIT", 100)))

    q = AdminLogEntry.query
    if action:
        q = q.filter(AdminLogEntry.action == action)
    if admin_id:
        q = q.filter(AdminLogEntry.admin_id == admin_id)

    with store_guard("audit log query"):
        total = q.count()
        rows = (
            q.order_by(AdminLogEntry.created_at.desc(), AdminLogEntry.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

    return {
        "logs": [r.to_dict() for r in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }
