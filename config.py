"""Environment-driven settings.

Everything is read once at import time (after load_dotenv) and copied into
app.config by create_app(). Tests pass overrides to create_app() instead of
touching the environment.
"""

import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def is_production() -> bool:
    return bool(os.getenv("RENDER")) or os.getenv("FLASK_ENV") == "production"


DEV_SECRET_KEY = "dev-secret-key-change-me"


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if not url:
        if os.getenv("RENDER") == "true":
            raise RuntimeError("DATABASE_URL missing on Render; refusing to use SQLite.")
        url = "sqlite:///scorekeeper.db"
    # Heroku/Render style URLs are not accepted by SQLAlchemy 1.4+.
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def load_config() -> dict:
    secret_key = os.getenv("SECRET_KEY") or os.getenv("FLASK_SECRET_KEY") or DEV_SECRET_KEY

    return {
        "SECRET_KEY": secret_key,
        "SQLALCHEMY_DATABASE_URI": _database_url(),
        "SQLALCHEMY_ENGINE_OPTIONS": {
            "pool_recycle": 300,
            "pool_pre_ping": True,
        },
        # --- Session & cookie hardening ---
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": os.getenv("SESSION_COOKIE_SAMESITE", "Lax"),
        "SESSION_COOKIE_SECURE": is_production(),
        "PERMANENT_SESSION_LIFETIME": timedelta(hours=_env_int("SESSION_LIFETIME_HOURS", 12)),
        "SESSION_IDLE_TIMEOUT_MINUTES": _env_int("SESSION_IDLE_TIMEOUT_MINUTES", 60),
        # Optional server-side sessions (true revocation with a shared Redis store).
        "USE_SERVER_SIDE_SESSIONS": os.getenv("USE_SERVER_SIDE_SESSIONS", "0") == "1",
        "SESSION_REDIS_URL": os.getenv("SESSION_REDIS_URL") or os.getenv("REDIS_URL") or "",
        "SESSION_KEY_PREFIX": os.getenv("SESSION_KEY_PREFIX", "scorekeeper:"),
        # Upstream auth proxy header carrying the caller identity (disabled when empty).
        "TRUSTED_IDENTITY_HEADER": (os.getenv("TRUSTED_IDENTITY_HEADER") or "").strip(),
        # --- Rate limiting ---
        # In production set RATE_LIMIT_STORAGE_URL to a Redis URL for multi-instance correctness.
        "RATELIMIT_STORAGE_URI": os.getenv("RATE_LIMIT_STORAGE_URL", "memory://"),
        "RATELIMIT_DEFAULT": os.getenv("RATE_LIMIT_DEFAULT", "2000 per day;300 per hour"),
        "RATELIMIT_ENABLED": os.getenv("RATE_LIMIT_ENABLED", "1") == "1",
        # --- Aggregation / ranking ---
        # Calendar days are bucketed in this zone for every caller.
        "REPORTING_TIMEZONE": os.getenv("REPORTING_TIMEZONE", "UTC"),
        "TREND_DEFAULT_DAYS": _env_int("TREND_DEFAULT_DAYS", 30),
        "TREND_MAX_DAYS": _env_int("TREND_MAX_DAYS", 365),
        "LEADERBOARD_DEFAULT_LIMIT": _env_int("LEADERBOARD_DEFAULT_LIMIT", 50),
        "LEADERBOARD_MAX_LIMIT": _env_int("LEADERBOARD_MAX_LIMIT", 100),
        "STREAK_LOOKBACK_DAYS": _env_int("STREAK_LOOKBACK_DAYS", 366),
        # --- Admin ---
        "AUDIT_LOG_DEFAULT_LIMIT": _env_int("AUDIT_LOG_DEFAULT_LIMIT", 50),
        "AUDIT_LOG_MAX_LIMIT": _env_int("AUDIT_LOG_MAX_LIMIT", 100),
        "ADMIN_USERS_DEFAULT_LIMIT": _env_int("ADMIN_USERS_DEFAULT_LIMIT", 10),
        "ADMIN_USERS_MAX_LIMIT": _env_int("ADMIN_USERS_MAX_LIMIT", 100),
        # --- Share cards ---
        "SHARE_PAYLOAD_MAX_BYTES": _env_int("SHARE_PAYLOAD_MAX_BYTES", 16 * 1024),
        # --- Challenge invites ---
        # "log" (default) or "redis" (push onto a list consumed by the mailer).
        "CHALLENGE_DELIVERY": (os.getenv("CHALLENGE_DELIVERY") or "log").strip().lower(),
        "CHALLENGE_REDIS_URL": os.getenv("CHALLENGE_REDIS_URL") or os.getenv("REDIS_URL") or "",
        "CHALLENGE_QUEUE_KEY": os.getenv("CHALLENGE_QUEUE_KEY", "scorekeeper:challenges"),
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO").upper(),
    }
