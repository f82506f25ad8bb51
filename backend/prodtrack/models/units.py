from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Unit(db.Model):
    """
    Production unit: a garment order or a reposition request.

    LIFECYCLE (see services/lifecycle_service.py for transition tables):
    - order:      active <-> paused, active -> completed, * -> deleted
    - reposition: pendiente -> aprobado | rechazado -> en_proceso -> completado,
                  non-terminal -> cancelado | eliminado
    - repositions may also be put on material hold (is_on_hold), which does
      not change status

    INVARIANTS:
    - total_pieces is fixed at creation.
    - Sum of AreaPieceRecord.pieces for the unit equals total_pieces.
    - current_area is set only while a single area holds every piece.
    - Never physically deleted; deletion is a terminal status.
    """
    __tablename__ = "units"
    __table_args__ = (
        db.CheckConstraint("total_pieces > 0", name="ck_units_total_pieces_positive"),
        db.Index("ix_units_kind_status", "kind", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False, index=True)  # order, reposition
    folio = db.Column(db.String(64), nullable=False, unique=True)
    total_pieces = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, index=True)
    current_area = db.Column(db.String(32), nullable=True, index=True)

    # Descriptive metadata
    title = db.Column(db.String(255), nullable=True)
    client_name = db.Column(db.String(255), nullable=True)
    reposition_type = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Material hold (repositions only); a flag beside status, not a state
    is_on_hold = db.Column(db.Boolean, nullable=False, default=False)
    hold_reason = db.Column(db.Text, nullable=True)
    held_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    held_at = db.Column(db.DateTime(timezone=True), nullable=True)
    released_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    released_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    approved_by = db.relationship("User", foreign_keys=[approved_by_user_id])

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "folio": self.folio,
            "total_pieces": self.total_pieces,
            "status": self.status,
            "current_area": self.current_area,
            "title": self.title,
            "client_name": self.client_name,
            "reposition_type": self.reposition_type,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "approved_by_user_id": self.approved_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "approved_at": to_utc_z(self.approved_at),
            "completed_at": to_utc_z(self.completed_at),
            "is_on_hold": self.is_on_hold,
            "hold_reason": self.hold_reason,
            "held_by_user_id": self.held_by_user_id,
            "held_at": to_utc_z(self.held_at),
            "released_by_user_id": self.released_by_user_id,
            "released_at": to_utc_z(self.released_at),
            "version_id": self.version_id,
        }


class FolioSequence(db.Model):
    """
    Atomic folio counters per unit kind and period.

    WHY: Prevent two concurrent creations from minting the same folio.
    """
    __tablename__ = "folio_sequences"
    __table_args__ = (
        db.UniqueConstraint("kind", "period", name="uq_folio_sequences_kind_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False)
    period = db.Column(db.String(8), nullable=False)  # YYMM
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
