"""Runtime switches editable from the admin dashboard.

Feature flags are booleans keyed by name; admin settings are JSON values keyed
by a dotted key and grouped by category. Rows are provisioned up front
(seed_feature_flags at startup, settings by deployment); the dashboard only
updates them.
"""

import json

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from errors import FeatureDisabledError, store_guard
from extensions import db
from timeutil import utcnow


FLAG_SHARE_CARDS = "share_cards"
FLAG_SOCIAL_CHALLENGES = "social_challenges"

DEFAULT_FEATURE_FLAGS = {
    FLAG_SHARE_CARDS: "Let users create public share cards",
    FLAG_SOCIAL_CHALLENGES: "Let users send leaderboard challenge invites",
}


class FeatureFlag(db.Model):
    __tablename__ = "feature_flags"

    id = Column(Integer, primary_key=True)
    name = Column(String(64), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    is_enabled = Column(Boolean, nullable=False, default=True)
    updated_by = Column(String(36), nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_enabled": bool(self.is_enabled),
            "updated_by": self.updated_by,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class AdminSetting(db.Model):
    __tablename__ = "admin_settings"

    key = Column(String(128), primary_key=True)
    category = Column(String(64), nullable=False, default="general")
    description = Column(Text, nullable=True)
    value_json = Column(Text, nullable=False, default="null")
    updated_by = Column(String(36), nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def value(self):
        try:
            return json.loads(self.value_json) if self.value_json else None
        except ValueError:
            return None

    def to_dict(self):
        return {
            "key": self.key,
            "category": self.category,
            "description": self.description,
            "value": self.value,
            "updated_by": self.updated_by,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def seed_feature_flags() -> None:
    """Insert any missing default flags (enabled). Existing rows are left alone."""
    existing = {name for (name,) in db.session.query(FeatureFlag.name).all()}
    missing = [name for name in DEFAULT_FEATURE_FLAGS if name not in existing]
    for name in missing:
        db.session.add(FeatureFlag(name=name, description=DEFAULT_FEATURE_FLAGS[name], is_enabled=True))
    if missing:
        db.session.commit()


def is_feature_enabled(name: str) -> bool:
    """Unknown flags count as enabled."""
    enabled = db.session.query(FeatureFlag.is_enabled).filter(FeatureFlag.name == name).scalar()
    return True if enabled is None else bool(enabled)


def require_feature(name: str) -> None:
    with store_guard(f"feature flag {name}"):
        enabled = is_feature_enabled(name)
    if not enabled:
        raise FeatureDisabledError(f"{name} is currently disabled")
