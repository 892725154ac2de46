"""Shared Flask extensions.

Blueprint modules import `db` and `limiter` from here instead of from app.py
(prevents circular imports).
"""

from flask import request
from flask_limiter import Limiter
from flask_sqlalchemy import SQLAlchemy


db = SQLAlchemy()


def get_client_ip() -> str:
    """Return the best-effort client IP.

    After ProxyFix, request.access_route[0] should be the real client IP.
    Falls back to request.remote_addr for local development.
    """
    if request.access_route:
        return request.access_route[0]
    return request.remote_addr or "0.0.0.0"


# Storage and default limits come from app.config (RATELIMIT_*), see config.py.
limiter = Limiter(get_client_ip)
