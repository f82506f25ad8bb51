from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class User(db.Model):
    """
    Shop-floor operator.

    Identity is established upstream; this table only tells the core which
    area an actor works in, which drives custody guards and notification
    fan-out.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_area_active", "area", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(128), nullable=False)
    area = db.Column(db.String(32), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "area": self.area,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
