# Overview: Piece ledger; per-unit, per-area custody counts.

"""
Piece Ledger Invariants (authoritative)

- For every unit, the pieces held across all of its AreaPieceRecord rows
  add up to Unit.total_pieces whenever no transaction is in flight.
- A row never holds zero pieces: draining a row deletes it.
- Only unit creation (seed) and transfer acceptance (decrement + increment)
  write here, and both do so inside the caller's transaction. Nothing in
  this module commits.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func

from ..errors import InsufficientCustody, InvalidState, ValidationError
from ..extensions import db
from ..models import AreaPieceRecord, Unit
from .concurrency import lock_for_update


def _area(area) -> str:
    return getattr(area, "value", area)


def _require_positive(delta) -> int:
    if isinstance(delta, bool) or not isinstance(delta, int) or delta <= 0:
        raise ValidationError("pieces must be a positive integer")
    return delta


def _get_record(unit_id: int, area, *, lock: bool = False) -> Optional[AreaPieceRecord]:
    query = db.session.query(AreaPieceRecord).filter_by(unit_id=unit_id, area=_area(area))
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_area_records(unit_id: int) -> list[AreaPieceRecord]:
    return (
        db.session.query(AreaPieceRecord)
        .filter_by(unit_id=unit_id)
        .order_by(AreaPieceRecord.area.asc())
        .all()
    )


def custody_of(unit_id: int, area) -> int:
    """Pieces of ``unit_id`` currently held by ``area`` (0 when it holds none)."""
    record = _get_record(unit_id, area)
    return record.pieces if record else 0


def seed(unit: Unit, area) -> AreaPieceRecord:
    """Place every piece of a freshly created unit in its initial area."""
    if get_area_records(unit.id):
        raise InvalidState(f"Unit {unit.id} already has custody records")
    record = AreaPieceRecord(unit_id=unit.id, area=_area(area), pieces=unit.total_pieces)
    db.session.add(record)
    db.session.flush()
    return record


def increment(unit_id: int, area, delta: int) -> AreaPieceRecord:
    delta = _require_positive(delta)
    record = _get_record(unit_id, area, lock=True)
    if record is None:
        record = AreaPieceRecord(unit_id=unit_id, area=_area(area), pieces=delta)
        db.session.add(record)
    else:
        record.pieces += delta
    db.session.flush()
    return record


def decrement(unit_id: int, area, delta: int) -> Optional[AreaPieceRecord]:
    """
    Remove ``delta`` pieces from an area's custody.

    Returns the remaining record, or None when the row drained and was
    deleted. Raises InsufficientCustody if the area holds fewer pieces.
    """
    delta = _require_positive(delta)
    record = _get_record(unit_id, area, lock=True)
    held = record.pieces if record else 0
    if held < delta:
        raise InsufficientCustody(
            f"Area {_area(area)} holds {held} pieces of unit {unit_id}, {delta} required"
        )

    if held == delta:
        db.session.delete(record)
        db.session.flush()
        return None

    record.pieces = held - delta
    db.session.flush()
    return record


def single_holder(unit_id: int) -> Optional[str]:
    """The area holding every piece of the unit, or None while custody is split."""
    unit = db.session.get(Unit, unit_id)
    if unit is None:
        return None
    records = get_area_records(unit_id)
    if len(records) == 1 and records[0].pieces == unit.total_pieces:
        return records[0].area
    return None


def ledger_total(unit_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(AreaPieceRecord.pieces), 0))
        .filter(AreaPieceRecord.unit_id == unit_id)
        .scalar()
    )
    return int(total or 0)


def check_conservation(unit: Unit) -> bool:
    return ledger_total(unit.id) == unit.total_pieces


def find_conservation_violations() -> list[dict]:
    """Units whose ledger does not add up to total_pieces."""
    totals = (
        db.session.query(AreaPieceRecord.unit_id, func.sum(AreaPieceRecord.pieces))
        .group_by(AreaPieceRecord.unit_id)
        .all()
    )
    held_by_unit = {unit_id: int(total) for unit_id, total in totals}

    violations = []
    for unit in db.session.query(Unit).order_by(Unit.id.asc()).all():
        held = held_by_unit.get(unit.id, 0)
        if held != unit.total_pieces:
            violations.append({
                "unit_id": unit.id,
                "folio": unit.folio,
                "total_pieces": unit.total_pieces,
                "ledger_pieces": held,
            })
    return violations
