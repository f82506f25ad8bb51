# Overview: Unit registry; creation, folio numbering and unit queries.

from __future__ import annotations

from typing import Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..models import Area, AreaPieceRecord, FolioSequence, HistoryAction, Unit, UnitKind
from ..time_utils import utcnow
from . import actor_service, history_service, ledger_service, notification_service, transitions
from .concurrency import lock_for_update, run_in_transaction
from .notification_service import DomainEvent


def _validate_total_pieces(total_pieces) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(total_pieces, bool) or not isinstance(total_pieces, int):
        raise ValidationError("total_pieces must be an integer")
    if total_pieces <= 0:
        raise ValidationError("total_pieces must be positive")
    return total_pieces


def _default_area(kind: UnitKind) -> Area:
    key = "DEFAULT_ORDER_AREA" if kind == UnitKind.ORDER else "DEFAULT_REPOSITION_AREA"
    return Area.parse(current_app.config[key])


def _bump_sequence(kind: UnitKind, period: str) -> Optional[int]:
    """Take the next number from an existing counter, or None if there is none yet."""
    result = db.session.execute(
        update(FolioSequence)
        .where(FolioSequence.kind == kind.value, FolioSequence.period == period)
        .values(next_number=FolioSequence.next_number + 1)
    )
    if not result.rowcount:
        return None
    db.session.flush()
    current = (
        db.session.query(FolioSequence.next_number)
        .filter_by(kind=kind.value, period=period)
        .scalar()
    )
    return current - 1


def _take_number(kind: UnitKind, period: str) -> int:
    number = _bump_sequence(kind, period)
    if number is not None:
        return number

    seq = FolioSequence(kind=kind.value, period=period, next_number=2)
    try:
        with db.session.begin_nested():
            db.session.add(seq)
        return 1
    except IntegrityError:
        # Another transaction created the counter first
        return _bump_sequence(kind, period)


def _format_folio(kind: UnitKind, now, number: int) -> str:
    if kind == UnitKind.ORDER:
        return f"P-{now.strftime('%y%m')}-{number:04d}"
    return f"JN-REQ-{now.strftime('%m')}-{now.strftime('%y')}-{number:03d}"


def next_folio(kind) -> str:
    """
    Atomically allocate the next folio for a unit kind in the current month.

    Orders:      P-2501-0001
    Repositions: JN-REQ-01-25-001

    Numbers already used by an explicitly supplied folio are skipped.
    """
    kind = transitions.parse_kind(kind)
    now = utcnow()
    period = now.strftime("%y%m")

    while True:
        folio = _format_folio(kind, now, _take_number(kind, period))
        if not db.session.query(Unit.id).filter_by(folio=folio).first():
            return folio


def create_unit(
    *,
    kind,
    total_pieces: int,
    created_by: int,
    initial_area=None,
    folio: str | None = None,
    title: str | None = None,
    client_name: str | None = None,
    reposition_type: str | None = None,
    notes: str | None = None,
) -> Unit:
    """
    Register a new unit and put all of its pieces in the initial area.

    Args:
        kind: "order" or "reposition"
        total_pieces: Positive piece count, fixed for the life of the unit
        created_by: Acting user ID
        initial_area: Area receiving the pieces (config default per kind)
        folio: Optional human document number; minted when omitted

    Returns:
        Unit: The created unit (status active / pendiente)

    Raises:
        ValidationError: Bad kind, pieces, area or duplicate folio
        NotFound: Unknown user
    """
    kind = transitions.parse_kind(kind)
    total_pieces = _validate_total_pieces(total_pieces)
    area = Area.parse(initial_area) if initial_area is not None else None
    folio = (folio or "").strip() or None

    def _op():
        actor = actor_service.get_actor(created_by)
        start_area = area or _default_area(kind)

        if folio and db.session.query(Unit.id).filter_by(folio=folio).first():
            raise ValidationError(f"Folio {folio} already exists")

        unit = Unit(
            kind=kind.value,
            folio=folio or next_folio(kind),
            total_pieces=total_pieces,
            status=transitions.INITIAL_STATUS[kind].value,
            current_area=start_area.value,
            title=title,
            client_name=client_name,
            reposition_type=reposition_type,
            notes=notes,
            created_by_user_id=actor.id,
        )
        try:
            with db.session.begin_nested():
                db.session.add(unit)
        except IntegrityError:
            # Lost a race for the same folio
            raise ValidationError(f"Folio {unit.folio} already exists")

        ledger_service.seed(unit, start_area)

        label = "Order" if kind == UnitKind.ORDER else "Reposition"
        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.CREATED,
            description=f"{label} created with {total_pieces} pieces in {start_area.value}",
            user_id=actor.id,
            to_area=start_area,
            pieces=total_pieces,
        )

        if kind == UnitKind.REPOSITION:
            notification_service.publish(DomainEvent(
                kind=notification_service.NEW_REPOSITION,
                title="New reposition request",
                message=f"A new reposition request {unit.folio} was created by {actor.name}",
                unit_id=unit.id,
                target_areas=actor_service.privileged_areas(),
                exclude_user_ids=(actor.id,),
            ))

        return unit

    return run_in_transaction(_op)


def get_unit(unit_id: int, *, lock: bool = False) -> Unit:
    query = db.session.query(Unit).filter_by(id=unit_id)
    if lock:
        query = lock_for_update(query)
    unit = query.first()
    if unit is None:
        raise NotFound(f"Unit {unit_id} not found")
    return unit


def list_units_by_area(area, *, include_closed: bool = False) -> list[Unit]:
    """Units of which ``area`` currently holds at least one piece."""
    area = Area.parse(area)
    query = (
        db.session.query(Unit)
        .join(AreaPieceRecord, AreaPieceRecord.unit_id == Unit.id)
        .filter(AreaPieceRecord.area == area.value)
    )
    if not include_closed:
        query = query.filter(Unit.status.notin_(transitions.terminal_statuses()))
    return query.order_by(Unit.created_at.desc(), Unit.id.desc()).all()


def list_units(
    *,
    kind=None,
    status: Optional[str] = None,
    include_deleted: bool = False,
    limit: int = 100,
) -> list[Unit]:
    query = db.session.query(Unit)
    if kind is not None:
        kind = transitions.parse_kind(kind)
        query = query.filter(Unit.kind == kind.value)
        if status is not None:
            query = query.filter(Unit.status == transitions.parse_status(kind, status).value)
    elif status is not None:
        query = query.filter(Unit.status == status)
    if not include_deleted:
        query = query.filter(Unit.status.notin_(set(s.value for s in transitions.DELETED_STATUS.values())))
    return query.order_by(Unit.created_at.desc(), Unit.id.desc()).limit(limit).all()
