"""Challenge invites: validate, then hand off to a delivery channel.

Routes:
- POST /api/social/challenge  {email, fromUser, fromRank, fromScore}

The engine's guarantee ends at "accepted for delivery". The redis channel
pushes the invite onto a list that the mailer drains; the log channel only
records it (local/dev).
"""

from __future__ import annotations

import json
import logging
import math
import secrets

import redis
from email_validator import EmailNotValidError, validate_email
from flask import Blueprint, current_app, jsonify, request

from errors import TransientError, ValidationError
from extensions import limiter
from identity import require_user
from models_settings import FLAG_SOCIAL_CHALLENGES, require_feature
from timeutil import utcnow


logger = logging.getLogger(__name__)

challenges_api = Blueprint("challenges_api", __name__)


def _new_message_id() -> str:
    return secrets.token_hex(8)


class LogDeliveryChannel:
    name = "log"

    def send(self, message: dict) -> str:
        message_id = _new_message_id()
        domain = message["to"].rsplit("@", 1)[-1]
        logger.info(
            "challenge %s from %s (rank #%s, %s XP) to *@%s",
            message_id, message["from_user"], message["from_rank"], message["from_score"], domain,
        )
        return message_id


class RedisQueueChannel:
    name = "redis"

    def __init__(self, client, queue_key: str):
        self.client = client
        self.queue_key = queue_key

    @classmethod
    def from_url(cls, url: str, queue_key: str) -> "RedisQueueChannel":
        return cls(redis.from_url(url), queue_key)

    def send(self, message: dict) -> str:
        message_id = _new_message_id()
        envelope = dict(message, id=message_id)
        try:
            self.client.rpush(self.queue_key, json.dumps(envelope, separators=(",", ":")))
        except redis.RedisError as e:
            logger.warning("challenge queue unavailable: %s", e)
            raise TransientError("Challenge delivery queue unavailable; retry later") from e
        return message_id


def build_channel(config: dict):
    kind = config.get("CHALLENGE_DELIVERY", "log")
    if kind == "redis":
        url = config.get("CHALLENGE_REDIS_URL")
        if not url:
            raise RuntimeError("CHALLENGE_DELIVERY=redis but CHALLENGE_REDIS_URL/REDIS_URL is not set")
        return RedisQueueChannel.from_url(url, config.get("CHALLENGE_QUEUE_KEY", "scorekeeper:challenges"))
    if kind == "log":
        return LogDeliveryChannel()
    raise RuntimeError(f"Unknown CHALLENGE_DELIVERY: {kind}")


def get_channel():
    return current_app.extensions["challenge_channel"]


def _validate_email(email) -> str:
    if not isinstance(email, str) or not email.strip():
        raise ValidationError("email is required")
    try:
        return validate_email(email.strip(), check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}")


def _validate_rank(rank) -> int:
    if isinstance(rank, float) and rank.is_integer():
        rank = int(rank)
    if isinstance(rank, bool) or not isinstance(rank, int) or rank < 1:
        raise ValidationError("fromRank must be a positive integer")
    return rank


def _validate_score(score):
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ValidationError("fromScore must be a non-negative number")
    if not math.isfinite(score) or score < 0:
        raise ValidationError("fromScore must be a non-negative number")
    return int(score) if float(score).is_integer() else float(score)


def dispatch_challenge(caller_id: str, from_user: str, from_rank, from_score, email, channel) -> dict:
    """Validate everything first; nothing reaches the channel on a bad request."""
    to = _validate_email(email)
    rank = _validate_rank(from_rank)
    score = _validate_score(from_score)

    message = {
        "type": "challenge_invite",
        "from_user_id": str(caller_id),
        "from_user": (from_user or "")[:128],
        "from_rank": rank,
        "from_score": score,
        "to": to,
        "created_at": utcnow().isoformat(),
    }
    message_id = channel.send(message)
    return {"status": "accepted", "message_id": message_id, "channel": channel.name}


@challenges_api.post("/api/social/challenge")
@limiter.limit("10 per minute")
def send_challenge():
    user = require_user()
    require_feature(FLAG_SOCIAL_CHALLENGES)
    data = request.get_json(silent=True) or {}

    from_user = str(data.get("fromUser") or "").strip() or user.display_name or user.username
    result = dispatch_challenge(
        user.id,
        from_user,
        data.get("fromRank"),
        data.get("fromScore"),
        data.get("email"),
        get_channel(),
    )
    body = {"success": True, "message": "Challenge sent!"}
    body.update(result)
    return jsonify(body), 202
