"""Flask application factory for the analytics / leaderboard engine.

Blueprints:
- admin_analytics  /api/admin/stats, /api/admin/logs
- admin_users      /api/admin/users...
- admin_announcements /api/admin/announcements...
- admin_settings   /api/admin/settings, /api/admin/verify
- announcements_api /api/announcements
- leaderboard_api  /api/leaderboard...
- sharing_api      /api/sharing...
- challenges_api   /api/social/challenge
- activity_api     /api/activity
"""

import logging
import time

import redis
from flask import Flask, jsonify, session as flask_session
from flask_compress import Compress
from flask_cors import CORS
from flask_session import Session
from sqlalchemy import text
from werkzeug.middleware.proxy_fix import ProxyFix

import config
from errors import register_error_handlers
from extensions import db, limiter
from timeutil import utcnow


logger = logging.getLogger(__name__)


def _configure_logging(level_name: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__)
    app.config.update(config.load_config())
    if overrides:
        app.config.update(overrides)

    _configure_logging(app.config["LOG_LEVEL"])

    # Enforce a strong SECRET_KEY in production (do not allow dev fallbacks).
    if config.is_production() and app.config["SECRET_KEY"] == config.DEV_SECRET_KEY:
        raise RuntimeError("SECRET_KEY must be set to a strong random value in production.")

    # Behind Render's edge proxy request.remote_addr is the proxy; trust one hop.
    if config.is_production():
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    db.init_app(app)
    limiter.init_app(app)
    CORS(app)
    Compress(app)
    if app.config.get("USE_SERVER_SIDE_SESSIONS"):
        _enable_server_side_sessions(app)

    # Imported here so models register on db before create_all().
    import models_activity  # noqa: F401
    import models_admin_logs  # noqa: F401
    import models_announcements  # noqa: F401
    import models_settings
    import models_sharing  # noqa: F401
    import models_users  # noqa: F401
    from activity import activity_api
    from admin_analytics import admin_analytics
    from admin_announcements import admin_announcements
    from admin_settings import admin_settings
    from admin_users import admin_users
    from announcements import announcements_api
    from challenges import build_channel, challenges_api
    from leaderboard import leaderboard_api
    from sharing import sharing_api

    app.register_blueprint(admin_analytics)
    app.register_blueprint(admin_users)
    app.register_blueprint(admin_announcements)
    app.register_blueprint(admin_settings)
    app.register_blueprint(announcements_api)
    app.register_blueprint(leaderboard_api)
    app.register_blueprint(sharing_api)
    app.register_blueprint(challenges_api)
    app.register_blueprint(activity_api)

    if "challenge_channel" not in app.extensions:
        app.extensions["challenge_channel"] = build_channel(app.config)

    register_error_handlers(app)
    _register_session_hooks(app)
    _register_health(app)

    with app.app_context():
        db.create_all()
        models_settings.seed_feature_flags()

    return app


def _enable_server_side_sessions(app: Flask) -> None:
    redis_url = app.config.get("SESSION_REDIS_URL")
    if not redis_url:
        raise RuntimeError("USE_SERVER_SIDE_SESSIONS=1 but SESSION_REDIS_URL/REDIS_URL is not set")
    app.config["SESSION_TYPE"] = "redis"
    app.config["SESSION_REDIS"] = redis.from_url(redis_url)
    app.config["SESSION_USE_SIGNER"] = True
    app.config["SESSION_PERMANENT"] = True
    Session(app)
    logger.info("server-side sessions enabled (prefix %s)", app.config["SESSION_KEY_PREFIX"])


def _register_session_hooks(app: Flask) -> None:
    # Flask only applies PERMANENT_SESSION_LIFETIME when session.permanent=True.
    @app.before_request
    def _enforce_session_expiry_and_idle_timeout():
        if not flask_session.get("user_id"):
            return

        flask_session.permanent = True

        idle_minutes = int(app.config.get("SESSION_IDLE_TIMEOUT_MINUTES", 60))
        now_ts = int(time.time())
        last_seen = flask_session.get("_last_seen_ts")
        if isinstance(last_seen, int) and idle_minutes > 0:
            if now_ts - last_seen > idle_minutes * 60:
                flask_session.clear()
                return

        flask_session["_last_seen_ts"] = now_ts

    @app.after_request
    def add_default_headers(resp):
        # API responses are per-caller; never let intermediaries cache them.
        resp.headers.setdefault("Cache-Control", "no-store")
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        return resp


def _register_health(app: Flask) -> None:
    @app.get("/api/health")
    def health_check():
        try:
            db.session.execute(text("SELECT 1"))
        except Exception as e:
            db.session.rollback()
            logger.warning("health check failed: %s", e)
            return jsonify(
                {
                    "success": False,
                    "status": "unhealthy",
                    "error": str(e),
                    "timestamp": utcnow().isoformat(),
                }
            ), 503
        return jsonify(
            {
                "success": True,
                "status": "healthy",
                "timestamp": utcnow().isoformat(),
                "database": "connected",
                "version": "1.0.0",
            }
        )
