import json

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from extensions import db
from timeutil import utcnow


class AdminLogEntry(db.Model):
    """Append-only record of privileged actions.

    Only audit_log.append() writes here; nothing updates or deletes rows.
    Targets are stored by value (no foreign keys) so history survives a hard
    delete of the target user.
    """

    __tablename__ = "admin_logs"

    id = Column(Integer, primary_key=True)
    admin_id = Column(String(36), nullable=False)
    admin_username = Column(String(64), nullable=True)
    action = Column(String(64), nullable=False)
    target_type = Column(String(32), nullable=True)
    target_id = Column(String(64), nullable=True)
    target_name = Column(String(128), nullable=True)
    details_json = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_admin_logs_created", "created_at"),
        Index("idx_admin_logs_action_created", "action", "created_at"),
        Index("idx_admin_logs_admin_created", "admin_id", "created_at"),
    )

    def to_dict(self):
        details = {}
        if self.details_json:
            try:
                details = json.loads(self.details_json)
            except ValueError:
                details = {}
        return {
            "id": self.id,
            "admin_id": self.admin_id,
            "admin_username": self.admin_username,
            "action": self.action,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "target_name": self.target_name,
            "details": details,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
