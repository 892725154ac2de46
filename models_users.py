"""User accounts as synced from the identity provider.

The engine only reads these rows and, for score changes, issues atomic
`xp = xp + :n` updates (see activity.record_activity / admin_users).
"""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text

from extensions import db
from timeutil import utcnow


USER_STATUS_ACTIVE = "active"
USER_STATUS_SUSPENDED = "suspended"
USER_STATUS_HIDDEN = "hidden"
USER_STATUS_DELETED = "deleted"


def _new_user_id() -> str:
    return str(uuid.uuid4())


class User(db.Model):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_user_id)
    github_id = Column(String(64), unique=True, nullable=True)
    username = Column(String(64), nullable=False, index=True)
    display_name = Column(String(128), nullable=True)
    email = Column(String(254), nullable=True)
    avatar_url = Column(String(500), nullable=True)

    xp = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_active = Column(DateTime, nullable=True)

    is_admin = Column(Boolean, nullable=False, default=False)
    is_suspended = Column(Boolean, nullable=False, default=False)
    suspended_at = Column(DateTime, nullable=True)
    suspended_reason = Column(Text, nullable=True)
    show_on_leaderboard = Column(Boolean, nullable=False, default=True)
    # Soft delete; hard delete removes the row entirely.
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_users_created_at", "created_at"),
        Index("idx_users_xp", "xp"),
    )

    @property
    def status(self) -> str:
        if self.deleted_at is not None:
            return USER_STATUS_DELETED
        if self.is_suspended:
            return USER_STATUS_SUSPENDED
        if not self.show_on_leaderboard:
            return USER_STATUS_HIDDEN
        return USER_STATUS_ACTIVE

    def to_dict(self):
        return {
            "id": self.id,
            "github_id": self.github_id,
            "username": self.username,
            "display_name": self.display_name,
            "email": self.email,
            "avatar_url": self.avatar_url,
            "xp": int(self.xp or 0),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_active": self.last_active.isoformat() if self.last_active else None,
            "is_admin": bool(self.is_admin),
            "is_suspended": bool(self.is_suspended),
            "suspended_at": self.suspended_at.isoformat() if self.suspended_at else None,
            "suspended_reason": self.suspended_reason,
            "show_on_leaderboard": bool(self.show_on_leaderboard),
            "status": self.status,
        }
