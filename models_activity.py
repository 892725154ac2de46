from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String

from extensions import db
from timeutil import utcnow


# Default XP per event kind (commits * 10 + prs * 25 + issues * 15 + reviews * 20).
EVENT_WEIGHTS = {
    "commit": 10,
    "pull_request": 25,
    "issue": 15,
    "review": 20,
}


class ActivityEvent(db.Model):
    """Append-only activity ledger feeding trends, streaks and XP.

    Rows are never updated; corrections are new events.
    """

    __tablename__ = "activity_events"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(32), nullable=False)
    weight = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_activity_created_at", "created_at"),
        Index("idx_activity_user_created", "user_id", "created_at"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "kind": self.kind,
            "weight": self.weight,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
