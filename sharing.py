"""Share cards: create once, fetch publicly, count views.

Routes:
- POST /api/sharing          (authenticated; body {"payload": {...}, "card_type": "stats"})
- GET  /api/sharing/<token>  (public; every successful fetch adds one view)

Each fetch counts its view with one `UPDATE ... SET view_count = view_count + 1`
issued before the row is read, inside the same transaction.
"""

from __future__ import annotations

import json
import logging
import re
import secrets

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import select, update

from errors import NotFoundError, ValidationError, store_guard
from extensions import db, limiter
from identity import require_user
from models_settings import FLAG_SHARE_CARDS, require_feature
from models_sharing import SharingCard


logger = logging.getLogger(__name__)

sharing_api = Blueprint("sharing_api", __name__)

_CARD_TYPE_RE = re.compile(r"^[a-z0-9_-]{1,32}$")


def _new_token() -> str:
    return secrets.token_urlsafe(16)


def create_card(owner_id: str, payload, card_type: str = "stats") -> SharingCard:
    if not isinstance(payload, dict):
        raise ValidationError("payload must be a JSON object")
    card_type = (card_type or "stats").strip().lower()
    if not _CARD_TYPE_RE.match(card_type):
        raise ValidationError("card_type must be a short slug (a-z, 0-9, _ or -)")

    try:
        payload_json = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        raise ValidationError("payload must be JSON-serializable")
    max_bytes = int(current_app.config.get("SHARE_PAYLOAD_MAX_BYTES", 16 * 1024))
    if len(payload_json.encode("utf-8")) > max_bytes:
        raise ValidationError(f"payload exceeds {max_bytes} bytes")

    card = SharingCard(
        token=_new_token(),
        user_id=str(owner_id),
        card_type=card_type,
        payload_json=payload_json,
        view_count=0,
    )
    with store_guard("share card create"):
        db.session.add(card)
        db.session.commit()
    logger.info("share card created id=%s owner=%s type=%s", card.id, owner_id, card_type)
    return card


def fetch_card(token: str) -> dict:
    """Count one view and return the card as of that view."""
    token = (token or "").strip()
    if not token or len(token) > 64:
        raise NotFoundError("Card not found")

    with store_guard("share card fetch"):
        res = db.session.execute(
            update(SharingCard)
            .where(SharingCard.token == token)
            .values(view_count=SharingCard.view_count + 1)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            db.session.rollback()
            raise NotFoundError("Card not found")

        card = db.session.execute(
            select(SharingCard)
            .where(SharingCard.token == token)
            .execution_options(populate_existing=True)
        ).scalar_one()
        out = card.to_dict()
        db.session.commit()
    return out


@sharing_api.post("/api/sharing")
@limiter.limit("30 per minute")
def api_create_card():
    user = require_user()
    require_feature(FLAG_SHARE_CARDS)
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON body required")

    card = create_card(user.id, data.get("payload"), data.get("card_type") or "stats")
    return jsonify(
        {
            "success": True,
            "card": card.to_dict(),
            "share_path": f"/api/sharing/{card.token}",
        }
    ), 201


@sharing_api.get("/api/sharing/<token>")
@limiter.limit("120 per minute")
def api_fetch_card(token: str):
    return jsonify({"success": True, "card": fetch_card(token)})
