from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class HistoryEvent(db.Model):
    """
    Append-only audit trail for a unit.

    Written in the same transaction as the mutation it records. Never
    updated or deleted. (created_at, id) ordering is the canonical timeline.
    """
    __tablename__ = "history_events"
    __table_args__ = (
        db.Index("ix_history_events_unit_created", "unit_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False)
    action = db.Column(db.String(32), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    from_area = db.Column(db.String(32), nullable=True)
    to_area = db.Column(db.String(32), nullable=True)
    pieces = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "unit_id": self.unit_id,
            "action": self.action,
            "description": self.description,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "from_area": self.from_area,
            "to_area": self.to_area,
            "pieces": self.pieces,
            "created_at": to_utc_z(self.created_at),
        }
