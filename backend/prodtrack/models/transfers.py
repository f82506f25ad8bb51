from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Transfer(db.Model):
    """
    Proposed movement of pieces between two areas for one unit.

    LIFECYCLE:
    1. pending: proposed by the source area, awaiting the destination
    2. accepted: destination took custody, ledger updated
    3. rejected: destination refused, ledger untouched

    accepted and rejected are terminal. Proposing does not reserve pieces;
    custody is re-validated when the transfer is accepted.
    """
    __tablename__ = "transfers"
    __table_args__ = (
        db.CheckConstraint("pieces > 0", name="ck_transfers_pieces_positive"),
        db.Index("ix_transfers_to_area_status", "to_area", "status"),
        db.Index("ix_transfers_unit_status", "unit_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)
    from_area = db.Column(db.String(32), nullable=False)
    to_area = db.Column(db.String(32), nullable=False)
    pieces = db.Column(db.Integer, nullable=False)

    # pending, accepted, rejected
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    processed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    unit = db.relationship("Unit", backref=db.backref("transfers", lazy=True))
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    processed_by = db.relationship("User", foreign_keys=[processed_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "unit_id": self.unit_id,
            "from_area": self.from_area,
            "to_area": self.to_area,
            "pieces": self.pieces,
            "status": self.status,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "processed_by_user_id": self.processed_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "processed_at": to_utc_z(self.processed_at),
        }
