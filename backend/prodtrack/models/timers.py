from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class AreaTimer(db.Model):
    """
    Dwell time of a unit in one area.

    Either a live interval (start_time/end_time, is_running) or a manually
    entered one (manual_* date and HH:MM strings). Write-once: the unique
    (unit_id, area) constraint allows a single row per pair, and a finished
    row is never edited.
    """
    __tablename__ = "area_timers"
    __table_args__ = (
        db.UniqueConstraint("unit_id", "area", name="uq_area_timers_unit_area"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)
    area = db.Column(db.String(32), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # Live form
    start_time = db.Column(db.DateTime(timezone=True), nullable=True)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)
    is_running = db.Column(db.Boolean, nullable=False, default=False)

    # Manual form (local wall-clock strings as entered)
    manual_start_date = db.Column(db.String(10), nullable=True)  # YYYY-MM-DD
    manual_start_time = db.Column(db.String(5), nullable=True)  # HH:MM
    manual_end_date = db.Column(db.String(10), nullable=True)
    manual_end_time = db.Column(db.String(5), nullable=True)

    elapsed_minutes = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    unit = db.relationship("Unit", backref=db.backref("timers", lazy=True))

    @property
    def is_manual(self) -> bool:
        return self.manual_start_time is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "unit_id": self.unit_id,
            "area": self.area,
            "user_id": self.user_id,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time),
            "is_running": self.is_running,
            "is_manual": self.is_manual,
            "manual_start_date": self.manual_start_date,
            "manual_start_time": self.manual_start_time,
            "manual_end_date": self.manual_end_date,
            "manual_end_time": self.manual_end_time,
            "elapsed_minutes": self.elapsed_minutes,
            "created_at": to_utc_z(self.created_at),
        }
