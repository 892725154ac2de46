"""Admin dashboard data: headline stats, daily trends and the audit trail."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

import audit_log
import trends
from errors import parse_int_arg
from identity import admin_required


admin_analytics = Blueprint("admin_analytics", __name__)


@admin_analytics.get("/api/admin/stats")
@admin_required
def api_admin_stats():
    days = trends.validate_days(parse_int_arg(request.args, "days", current_app.config["TREND_DEFAULT_DAYS"]))

    return jsonify(
        {
            "success": True,
            "days": days,
            "stats": trends.get_admin_stats(),
            "signupTrends": trends.get_trend(trends.METRIC_SIGNUPS, days),
            "activityTrends": trends.get_trend(trends.METRIC_ACTIVITY, days),
        }
    )


@admin_analytics.get("/api/admin/logs")
@admin_required
def api_admin_logs():
    page = parse_int_arg(request.args, "page", 1)
    limit = parse_int_arg(request.args, "limit", current_app.config["AUDIT_LOG_DEFAULT_LIMIT"])

    action = (request.args.get("action") or "").strip() or None
    admin_id = (request.args.get("adminId") or request.args.get("admin_id") or "").strip() or None

    result = audit_log.query(page, limit, action=action, admin_id=admin_id)
    return jsonify({"success": True, **result})
