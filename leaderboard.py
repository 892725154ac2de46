"""Public leaderboard APIs.

Routes:
- GET /api/leaderboard?page=1&limit=50
- GET /api/leaderboard/<user_id>
"""

from flask import Blueprint, current_app, jsonify, request

import ranking
from errors import parse_int_arg, validate_page
from extensions import limiter


leaderboard_api = Blueprint("leaderboard_api", __name__)


@leaderboard_api.get("/api/leaderboard")
@limiter.limit("120 per minute")
def get_leaderboard():
    page = parse_int_arg(request.args, "page", 1)
    limit = parse_int_arg(request.args, "limit", current_app.config["LEADERBOARD_DEFAULT_LIMIT"])
    validate_page(page, limit, current_app.config["LEADERBOARD_MAX_LIMIT"])

    board = ranking.get_leaderboard(offset=(page - 1) * limit, limit=limit)
    total = board["total"]
    return jsonify(
        {
            "success": True,
            "rankings": board["entries"],
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": (total + limit - 1) // limit,
        }
    )


@leaderboard_api.get("/api/leaderboard/<user_id>")
@limiter.limit("120 per minute")
def get_leaderboard_entry(user_id: str):
    return jsonify({"success": True, "entry": ranking.get_user_entry(user_id)})
