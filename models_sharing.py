import json

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text

from extensions import db
from timeutil import utcnow


class SharingCard(db.Model):
    """Public, tokenized stats card.

    view_count is the only mutable column and only ever moves up, through a
    single `view_count = view_count + 1` UPDATE (see sharing.fetch_card).
    """

    __tablename__ = "sharing_cards"

    id = Column(Integer, primary_key=True)
    token = Column(String(64), unique=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    card_type = Column(String(32), nullable=False, default="stats")
    payload_json = Column(Text, nullable=False)
    view_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_sharing_cards_user_created", "user_id", "created_at"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "token": self.token,
            "user_id": self.user_id,
            "card_type": self.card_type,
            "payload": json.loads(self.payload_json) if self.payload_json else {},
            "view_count": int(self.view_count or 0),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
