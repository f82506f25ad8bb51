# backend/prodtrack/services/transfer_service.py
"""
Inter-area piece transfer service.

WHY: Pieces of a unit only change custody through a transfer that the
destination area explicitly accepts. This is the only writer of the piece
ledger after unit creation.

LIFECYCLE:
1. PENDING: Proposed by the source area (custody checked, nothing moved)
2. ACCEPTED: Destination took the pieces; ledger decremented/incremented
3. REJECTED: Destination refused; ledger untouched

Proposals do not reserve pieces, so the pending total may exceed custody.
Acceptance re-validates custody and is the enforcement point.
"""
from __future__ import annotations

from ..errors import InsufficientCustody, InvalidState, NotFound, ValidationError
from ..extensions import db
from ..models import Area, HistoryAction, RepositionStatus, Transfer, TransferStatus, Unit, UnitKind
from ..time_utils import utcnow
from . import history_service, ledger_service, notification_service, transitions
from .actor_service import get_actor
from .concurrency import run_in_transaction
from .notification_service import DomainEvent
from .unit_service import get_unit


def _validate_pieces(pieces) -> int:
    if isinstance(pieces, bool) or not isinstance(pieces, int):
        raise ValidationError("pieces must be an integer")
    if pieces <= 0:
        raise ValidationError("pieces must be positive")
    return pieces


def _require_open(unit: Unit) -> None:
    if transitions.is_terminal(unit.kind, unit.status):
        raise InvalidState(f"Unit {unit.folio} is {unit.status}; transfers are closed")


def get_transfer(transfer_id: int) -> Transfer:
    transfer = db.session.get(Transfer, transfer_id)
    if transfer is None:
        raise NotFound(f"Transfer {transfer_id} not found")
    return transfer


def _claim(transfer: Transfer, status: TransferStatus, processed_by: int) -> None:
    """
    Move a transfer out of PENDING with a status-guarded update.

    Only one concurrent caller can win: the loser matches zero rows and
    gets InvalidState.
    """
    rows = (
        db.session.query(Transfer)
        .filter(Transfer.id == transfer.id, Transfer.status == TransferStatus.PENDING.value)
        .update(
            {
                Transfer.status: status.value,
                Transfer.processed_by_user_id: processed_by,
                Transfer.processed_at: utcnow(),
            },
            synchronize_session=False,
        )
    )
    if rows != 1:
        db.session.refresh(transfer)
        raise InvalidState(f"Transfer {transfer.id} is already {transfer.status}")
    db.session.refresh(transfer)


def propose_transfer(
    *,
    unit_id: int,
    from_area,
    to_area,
    pieces: int,
    created_by: int,
    notes: str | None = None,
) -> Transfer:
    """
    Propose moving ``pieces`` of a unit from one area to another.

    Raises:
        ValidationError: Non-positive pieces, unknown or identical areas
        InsufficientCustody: Source area holds fewer pieces than proposed
        InvalidState: Unit is in a terminal status
    """
    pieces = _validate_pieces(pieces)
    source = Area.parse(from_area)
    destination = Area.parse(to_area)
    if source == destination:
        raise ValidationError("Cannot transfer to the same area")

    def _op():
        actor = get_actor(created_by)
        unit = get_unit(unit_id)
        _require_open(unit)

        held = ledger_service.custody_of(unit.id, source)
        if pieces > held:
            raise InsufficientCustody(
                f"Area {source.value} holds {held} pieces of {unit.folio}, cannot send {pieces}"
            )

        transfer = Transfer(
            unit_id=unit.id,
            from_area=source.value,
            to_area=destination.value,
            pieces=pieces,
            status=TransferStatus.PENDING.value,
            notes=notes,
            created_by_user_id=actor.id,
        )
        db.session.add(transfer)
        db.session.flush()

        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.TRANSFER_CREATED,
            description=f"{pieces} pieces sent from {source.value} to {destination.value}",
            user_id=actor.id,
            from_area=source,
            to_area=destination,
            pieces=pieces,
        )

        notification_service.publish(DomainEvent(
            kind=notification_service.TRANSFER_CREATED,
            title="Incoming transfer",
            message=f"{pieces} pieces of {unit.folio} are waiting to be accepted from {source.value}",
            unit_id=unit.id,
            target_areas=(destination.value,),
        ))

        return transfer

    return run_in_transaction(_op)


def accept_transfer(transfer_id: int, processed_by: int) -> Transfer:
    """
    Accept a pending transfer and move custody.

    The status claim, source decrement, destination increment, current_area
    refresh and history entry commit together. If the source no longer holds
    enough pieces the whole step rolls back and the transfer stays pending.

    Raises:
        NotFound: Unknown transfer or user
        InvalidState: Transfer not pending, or unit closed
        InsufficientCustody: Source drained since the proposal
    """
    def _op():
        actor = get_actor(processed_by)
        transfer = get_transfer(transfer_id)
        unit = get_unit(transfer.unit_id, lock=True)
        _require_open(unit)

        _claim(transfer, TransferStatus.ACCEPTED, actor.id)

        ledger_service.decrement(unit.id, transfer.from_area, transfer.pieces)
        ledger_service.increment(unit.id, transfer.to_area, transfer.pieces)
        unit.current_area = ledger_service.single_holder(unit.id)

        held = ledger_service.custody_of(unit.id, transfer.to_area)
        partial = held < unit.total_pieces

        if unit.kind == UnitKind.REPOSITION.value and unit.status == RepositionStatus.APROBADO.value:
            transitions.apply_transition(unit, RepositionStatus.EN_PROCESO)
            history_service.record(
                unit_id=unit.id,
                action=HistoryAction.STARTED,
                description="Reposition in process",
                user_id=actor.id,
                to_area=transfer.to_area,
            )

        description = (
            f"Transfer accepted - {transfer.pieces} pieces moved from "
            f"{transfer.from_area} to {transfer.to_area}"
        )
        if partial:
            description += " (partial transfer)"
        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.TRANSFER_ACCEPTED,
            description=description,
            user_id=actor.id,
            from_area=transfer.from_area,
            to_area=transfer.to_area,
            pieces=transfer.pieces,
        )

        notification_service.publish(DomainEvent(
            kind=notification_service.TRANSFER_PROCESSED,
            title="Transfer accepted",
            message=f"{transfer.to_area} accepted {transfer.pieces} pieces of {unit.folio}",
            unit_id=unit.id,
            target_user_ids=(transfer.created_by_user_id,),
        ))
        if partial:
            notification_service.publish(DomainEvent(
                kind=notification_service.PARTIAL_TRANSFER_WARNING,
                title="Partial transfer",
                message=(
                    f"{transfer.pieces} of {unit.total_pieces} pieces of {unit.folio} arrived from "
                    f"{transfer.from_area}; {transfer.to_area} now holds {held} of {unit.total_pieces}. "
                    f"This unit cannot be paused until all pieces are received."
                ),
                unit_id=unit.id,
                target_areas=(transfer.to_area,),
            ))

        return transfer

    return run_in_transaction(_op)


def reject_transfer(transfer_id: int, processed_by: int) -> Transfer:
    """
    Reject a pending transfer. The ledger is not touched.

    Raises:
        NotFound: Unknown transfer or user
        InvalidState: Transfer not pending
    """
    def _op():
        actor = get_actor(processed_by)
        transfer = get_transfer(transfer_id)
        unit = get_unit(transfer.unit_id)

        _claim(transfer, TransferStatus.REJECTED, actor.id)

        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.TRANSFER_REJECTED,
            description=(
                f"Transfer rejected: {transfer.pieces} pieces remain in {transfer.from_area}; "
                f"nothing moved to {transfer.to_area}"
            ),
            user_id=actor.id,
            from_area=transfer.from_area,
            to_area=transfer.to_area,
            pieces=transfer.pieces,
        )

        notification_service.publish(DomainEvent(
            kind=notification_service.TRANSFER_PROCESSED,
            title="Transfer rejected",
            message=f"{transfer.to_area} rejected {transfer.pieces} pieces of {unit.folio}",
            unit_id=unit.id,
            target_user_ids=(transfer.created_by_user_id,),
        ))

        return transfer

    return run_in_transaction(_op)


def reject_pending_for_unit(unit: Unit, processed_by: int, reason: str) -> int:
    """
    Reject every pending transfer of a unit being closed.

    Runs inside the caller's transaction. Returns the number rejected.
    """
    rejected = 0
    for transfer in pending_for_unit(unit.id):
        _claim(transfer, TransferStatus.REJECTED, processed_by)
        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.TRANSFER_REJECTED,
            description=f"Transfer of {transfer.pieces} pieces to {transfer.to_area} rejected: {reason}",
            user_id=processed_by,
            from_area=transfer.from_area,
            to_area=transfer.to_area,
            pieces=transfer.pieces,
        )
        rejected += 1
    return rejected


def pending_for_area(area) -> list[Transfer]:
    """Pending transfers waiting on ``area`` to accept or reject."""
    area = Area.parse(area)
    return (
        db.session.query(Transfer)
        .filter_by(to_area=area.value, status=TransferStatus.PENDING.value)
        .order_by(Transfer.created_at.desc(), Transfer.id.desc())
        .all()
    )


def pending_for_unit(unit_id: int) -> list[Transfer]:
    return (
        db.session.query(Transfer)
        .filter_by(unit_id=unit_id, status=TransferStatus.PENDING.value)
        .order_by(Transfer.created_at.asc(), Transfer.id.asc())
        .all()
    )


def list_for_unit(unit_id: int) -> list[Transfer]:
    get_unit(unit_id)
    return (
        db.session.query(Transfer)
        .filter_by(unit_id=unit_id)
        .order_by(Transfer.created_at.asc(), Transfer.id.asc())
        .all()
    )
