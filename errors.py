"""Error taxonomy shared by every blueprint.

Services raise these; the handler registered in app.py renders them with the
same {"success": false, "error": ...} envelope the rest of the API uses.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

from flask import jsonify
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from extensions import db


logger = logging.getLogger(__name__)


class EngineError(Exception):
    status_code = 500
    code = "error"

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message, "code": self.code}
        body.update(self.extra)
        return body


class ValidationError(EngineError):
    status_code = 400
    code = "validation_error"


class UnauthorizedError(EngineError):
    status_code = 401
    code = "unauthorized"


class ForbiddenError(UnauthorizedError):
    """Caller is identified but lacks admin rights."""

    status_code = 403
    code = "forbidden"


class NotFoundError(EngineError):
    status_code = 404
    code = "not_found"


class FeatureDisabledError(EngineError):
    """The feature is switched off by an admin feature flag."""

    status_code = 403
    code = "feature_disabled"


class TransientError(EngineError):
    """Store unreachable or timed out. Safe for the caller to retry."""

    status_code = 503
    code = "transient"

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["retryable"] = True
        return body


class AuditLogError(EngineError):
    code = "audit_log_error"


class PartialFailure(EngineError):
    """The privileged action committed but its audit entry did not."""

    status_code = 500
    code = "partial_failure"

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["partial"] = True
        body["action_completed"] = True
        return body


@contextmanager
def store_guard(operation: str):
    """Translate connectivity failures from the store into TransientError."""
    try:
        yield
    except (OperationalError, InterfaceError, PoolTimeoutError) as e:
        db.session.rollback()
        logger.warning("store unavailable during %s: %s", operation, e)
        raise TransientError(f"Store unavailable while running {operation}; retry later") from e


def parse_int_arg(args, name: str, default: int) -> int:
    raw = args.get(name)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def validate_page(page: int, limit: int, max_limit: int) -> None:
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1 or limit > max_limit:
        raise ValidationError(f"limit must be between 1 and {max_limit}")


def register_error_handlers(app) -> None:
    @app.errorhandler(EngineError)
    def _handle_engine_error(e: EngineError):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def _handle_missing_route(e):
        return jsonify({"success": False, "error": "Not found", "code": "not_found"}), 404

    @app.errorhandler(405)
    def _handle_bad_method(e):
        return jsonify({"success": False, "error": "Method not allowed", "code": "method_not_allowed"}), 405

    @app.errorhandler(429)
    def _handle_rate_limited(e):
        return jsonify({"success": False, "error": "Too many requests", "code": "rate_limited"}), 429
