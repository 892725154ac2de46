from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text

from extensions import db
from timeutil import utcnow


ANNOUNCEMENT_TYPES = ("info", "success", "warning", "error")


class Announcement(db.Model):
    __tablename__ = "announcements"

    id = Column(Integer, primary_key=True)

    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)

    # "info" | "success" | "warning" | "error"
    type = Column(String(16), nullable=False, default="info")

    is_active = Column(Boolean, nullable=False, default=True)
    show_on_dashboard = Column(Boolean, nullable=False, default=True)
    show_on_landing = Column(Boolean, nullable=False, default=False)

    # Optional scheduling window
    starts_at = Column(DateTime, nullable=True)
    ends_at = Column(DateTime, nullable=True)

    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_announcements_created", "created_at"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "is_active": bool(self.is_active),
            "show_on_dashboard": bool(self.show_on_dashboard),
            "show_on_landing": bool(self.show_on_landing),
            "starts_at": self.starts_at.isoformat() if self.starts_at else None,
            "ends_at": self.ends_at.isoformat() if self.ends_at else None,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
