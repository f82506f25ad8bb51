from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class AreaPieceRecord(db.Model):
    """
    Custody row: how many pieces of a unit an area currently holds.

    Rows never hold zero pieces; a row that drains is deleted. Written only
    by unit creation and transfer acceptance.
    """
    __tablename__ = "area_piece_records"
    __table_args__ = (
        db.UniqueConstraint("unit_id", "area", name="uq_area_piece_records_unit_area"),
        db.CheckConstraint("pieces > 0", name="ck_area_piece_records_pieces_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)
    area = db.Column(db.String(32), nullable=False, index=True)
    pieces = db.Column(db.Integer, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    unit = db.relationship("Unit", backref=db.backref("area_records", lazy=True))

    def to_dict(self) -> dict:
        return {
            "unit_id": self.unit_id,
            "area": self.area,
            "pieces": self.pieces,
            "updated_at": to_utc_z(self.updated_at),
        }
