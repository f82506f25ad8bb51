# Overview: Status lifecycle for orders and repositions.

"""
Unit Status Lifecycle Service

================================================================================
PURPOSE: Apply status transitions to units, guarded by the transition tables
in services/transitions.py and, for pause, by the piece ledger.
================================================================================

RULES:
1. An order may only be paused by the area that holds every one of its
   pieces. Split custody (a partial transfer in progress) blocks pausing.
2. Approval never moves a reposition between areas; only accepted transfers
   change custody.
3. Any area may ask for a reposition to be completed; only privileged areas
   complete, cancel, approve or delete.
4. Deletion is a terminal status (deleted / eliminado). Rows are kept for
   audit and pending transfers of the unit are rejected.
5. A reposition may be put on material hold by the warehouse or a privileged
   area. The hold is a flag and never changes status.

Every operation appends a history event in the same transaction.
"""

from __future__ import annotations

from typing import Optional

from ..errors import InsufficientCustody, InvalidState, ValidationError
from ..models import Area, HistoryAction, OrderStatus, RepositionStatus, Unit, UnitKind
from ..time_utils import utcnow
from . import history_service, ledger_service, notification_service, transitions, transfer_service
from .actor_service import AllowedPredicate, get_actor, is_privileged, privileged_areas, require_privileged
from .concurrency import run_in_transaction
from .notification_service import DomainEvent
from .unit_service import get_unit


def _require_text(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} is required")
    return value


def _require_kind(unit: Unit, kind: UnitKind, action: str) -> None:
    if unit.kind != kind.value:
        raise InvalidState(f"Cannot {action} {unit.kind} {unit.folio}; only {kind.value}s support it")


def _with_notes(text: str, notes: Optional[str]) -> str:
    notes = (notes or "").strip()
    return f"{text}: {notes}" if notes else text


def _notify_creator(unit: Unit, actor_id: int, *, kind: str, title: str, message: str) -> None:
    if unit.created_by_user_id == actor_id:
        return
    notification_service.publish(DomainEvent(
        kind=kind,
        title=title,
        message=message,
        unit_id=unit.id,
        target_user_ids=(unit.created_by_user_id,),
    ))


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

def pause_unit(unit_id: int, user_id: int, reason: str) -> Unit:
    """
    Pause an active order (active -> paused).

    Raises:
        ValidationError: Missing reason
        InvalidState: Not an order, or not active
        InsufficientCustody: Caller's area does not hold every piece
    """
    reason = _require_text(reason, "reason")

    def _op():
        actor = get_actor(user_id)
        unit = get_unit(unit_id, lock=True)
        _require_kind(unit, UnitKind.ORDER, "pause")
        transitions.require_transition(unit, OrderStatus.PAUSED)

        held = ledger_service.custody_of(unit.id, actor.area)
        if held != unit.total_pieces:
            raise InsufficientCustody(
                f"Partial custody: area {actor.area} holds {held} of {unit.total_pieces} pieces "
                f"of {unit.folio}. The unit can only be paused once every piece is received."
            )

        transitions.apply_transition(unit, OrderStatus.PAUSED)
        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.PAUSED,
            description=f"Order paused - Reason: {reason}",
            user_id=actor.id,
            from_area=actor.area,
        )
        return unit

    return run_in_transaction(_op)


def resume_unit(unit_id: int, user_id: int) -> Unit:
    """Resume a paused order (paused -> active). No custody guard."""
    def _op():
        actor = get_actor(user_id)
        unit = get_unit(unit_id, lock=True)
        _require_kind(unit, UnitKind.ORDER, "resume")
        transitions.apply_transition(unit, OrderStatus.ACTIVE)
        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.RESUMED,
            description="Order resumed",
            user_id=actor.id,
        )
        return unit

    return run_in_transaction(_op)


def complete_unit(
    unit_id: int,
    user_id: int,
    notes: Optional[str] = None,
    *,
    allowed: Optional[AllowedPredicate] = None,
) -> Unit:
    """
    Complete an order (active -> completed) or a reposition
    (aprobado | en_proceso -> completado).

    ``allowed`` decides who may complete; it defaults to the privileged-area
    check.
    """
    def _op():
        actor = get_actor(user_id)
        unit = get_unit(unit_id, lock=True)
        require_privileged(actor.id, "complete units", allowed)

        if unit.kind == UnitKind.ORDER.value:
            transitions.apply_transition(unit, OrderStatus.COMPLETED)
            label = "Order completed"
        else:
            transitions.apply_transition(unit, RepositionStatus.COMPLETADO)
            label = "Reposition completed"
        unit.completed_at = utcnow()

        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.COMPLETED,
            description=_with_notes(label, notes),
            user_id=actor.id,
        )

        if unit.kind == UnitKind.REPOSITION.value:
            _notify_creator(
                unit,
                actor.id,
                kind=notification_service.REPOSITION_COMPLETED,
                title="Reposition completed",
                message=_with_notes(f"Reposition {unit.folio} was completed", notes),
            )
        return unit

    return run_in_transaction(_op)


def delete_unit(
    unit_id: int,
    user_id: int,
    *,
    allowed: Optional[AllowedPredicate] = None,
) -> Unit:
    """
    Soft-delete a unit of either kind.

    The unit moves to its terminal deleted status, closure time is stamped,
    pending transfers are rejected and the history, ledger and transfer rows
    are kept.
    """
    def _op():
        actor = get_actor(user_id)
        unit = get_unit(unit_id, lock=True)
        require_privileged(actor.id, "delete units", allowed)

        transitions.apply_transition(unit, transitions.DELETED_STATUS[UnitKind(unit.kind)])
        unit.completed_at = utcnow()
        transfer_service.reject_pending_for_unit(unit, actor.id, "unit deleted")

        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.DELETED,
            description=f"{unit.folio} deleted",
            user_id=actor.id,
        )
        _notify_creator(
            unit,
            actor.id,
            kind=notification_service.UNIT_DELETED,
            title="Unit deleted",
            message=f"{unit.folio} was deleted by {actor.name}",
        )
        return unit

    return run_in_transaction(_op)


# ---------------------------------------------------------------------------
# Repositions
# ---------------------------------------------------------------------------

def approve_reposition(
    unit_id: int,
    user_id: int,
    action,
    notes: Optional[str] = None,
    *,
    allowed: Optional[AllowedPredicate] = None,
) -> Unit:
    """
    Approve or reject a pending reposition.

    Args:
        action: "aprobado" or "rechazado"

    current_area is left as is; custody only moves through transfers.
    """
    target = transitions.parse_status(UnitKind.REPOSITION, action)
    if target not in (RepositionStatus.APROBADO, RepositionStatus.RECHAZADO):
        raise ValidationError("action must be 'aprobado' or 'rechazado'")

    def _op():
        actor = get_actor(user_id)
        unit = get_unit(unit_id, lock=True)
        _require_kind(unit, UnitKind.REPOSITION, "approve")
        require_privileged(actor.id, "approve repositions", allowed)

        transitions.apply_transition(unit, target)
        unit.approved_by_user_id = actor.id
        unit.approved_at = utcnow()

        approved = target == RepositionStatus.APROBADO
        verb = "approved" if approved else "rejected"
        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.APPROVED if approved else HistoryAction.REJECTED,
            description=_with_notes(f"Reposition {verb}", notes),
            user_id=actor.id,
        )
        notification_service.publish(DomainEvent(
            kind=notification_service.REPOSITION_APPROVED if approved else notification_service.REPOSITION_REJECTED,
            title=f"Reposition {verb}",
            message=_with_notes(f"Your reposition {unit.folio} was {verb}", notes),
            unit_id=unit.id,
            target_user_ids=(unit.created_by_user_id,),
        ))
        return unit

    return run_in_transaction(_op)


def request_completion(unit_id: int, user_id: int, notes: Optional[str] = None) -> Unit:
    """
    Ask privileged areas to complete a reposition.

    Does not change status; a privileged user must call complete_unit.
    """
    def _op():
        actor = get_actor(user_id)
        unit = get_unit(unit_id)
        _require_kind(unit, UnitKind.REPOSITION, "request completion of")
        if transitions.is_terminal(unit.kind, unit.status):
            raise InvalidState(f"Reposition {unit.folio} is already {unit.status}")

        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.COMPLETION_REQUESTED,
            description=_with_notes("Completion requested", notes),
            user_id=actor.id,
        )
        notification_service.publish(DomainEvent(
            kind=notification_service.COMPLETION_APPROVAL_NEEDED,
            title="Completion requested",
            message=_with_notes(f"Approval requested to complete reposition {unit.folio}", notes),
            unit_id=unit.id,
            target_areas=privileged_areas(),
            exclude_user_ids=(actor.id,),
        ))
        return unit

    return run_in_transaction(_op)


def cancel_reposition(
    unit_id: int,
    user_id: int,
    reason: str,
    *,
    allowed: Optional[AllowedPredicate] = None,
) -> Unit:
    """Cancel a non-terminal reposition. Reason is mandatory."""
    reason = _require_text(reason, "reason")

    def _op():
        actor = get_actor(user_id)
        unit = get_unit(unit_id, lock=True)
        _require_kind(unit, UnitKind.REPOSITION, "cancel")
        require_privileged(actor.id, "cancel repositions", allowed)

        transitions.apply_transition(unit, RepositionStatus.CANCELADO)
        unit.completed_at = utcnow()
        transfer_service.reject_pending_for_unit(unit, actor.id, "reposition canceled")

        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.CANCELED,
            description=f"Reposition canceled. Reason: {reason}",
            user_id=actor.id,
        )
        _notify_creator(
            unit,
            actor.id,
            kind=notification_service.REPOSITION_CANCELED,
            title="Reposition canceled",
            message=f"Reposition {unit.folio} was canceled. Reason: {reason}",
        )
        return unit

    return run_in_transaction(_op)


# ---------------------------------------------------------------------------
# Material hold
# ---------------------------------------------------------------------------

def _warehouse_or_privileged(user_id: int) -> bool:
    actor = get_actor(user_id)
    return actor.area == Area.ALMACEN.value or is_privileged(user_id)


def hold_reposition(
    unit_id: int,
    user_id: int,
    reason: str,
    *,
    allowed: Optional[AllowedPredicate] = None,
) -> Unit:
    """
    Put a reposition on material hold.

    The hold is a flag beside the status: the reposition keeps its status,
    custody and pending transfers. Privileged areas are notified.

    ``allowed`` defaults to the warehouse area or a privileged area.

    Raises:
        ValidationError: Missing reason
        InvalidState: Not a reposition, closed, or already on hold
        PermissionDenied: Caller may not hold material
    """
    reason = _require_text(reason, "reason")

    def _op():
        actor = get_actor(user_id)
        unit = get_unit(unit_id, lock=True)
        _require_kind(unit, UnitKind.REPOSITION, "hold")
        require_privileged(actor.id, "hold reposition material", allowed or _warehouse_or_privileged)
        if transitions.is_terminal(unit.kind, unit.status):
            raise InvalidState(f"Reposition {unit.folio} is already {unit.status}")
        if unit.is_on_hold:
            raise InvalidState(f"Reposition {unit.folio} is already on hold")

        unit.is_on_hold = True
        unit.hold_reason = reason
        unit.held_by_user_id = actor.id
        unit.held_at = utcnow()
        unit.released_by_user_id = None
        unit.released_at = None

        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.PAUSED,
            description=f"Reposition on material hold. Reason: {reason}",
            user_id=actor.id,
            from_area=actor.area,
        )
        notification_service.publish(DomainEvent(
            kind=notification_service.REPOSITION_PAUSED,
            title="Reposition on hold",
            message=f"Reposition {unit.folio} was put on hold by {actor.name}. Reason: {reason}",
            unit_id=unit.id,
            target_areas=privileged_areas(),
            exclude_user_ids=(actor.id,),
        ))
        return unit

    return run_in_transaction(_op)


def release_reposition(
    unit_id: int,
    user_id: int,
    *,
    allowed: Optional[AllowedPredicate] = None,
) -> Unit:
    """Release a reposition from material hold. The hold reason is cleared."""
    def _op():
        actor = get_actor(user_id)
        unit = get_unit(unit_id, lock=True)
        _require_kind(unit, UnitKind.REPOSITION, "release")
        require_privileged(actor.id, "release reposition material", allowed or _warehouse_or_privileged)
        if not unit.is_on_hold:
            raise InvalidState(f"Reposition {unit.folio} is not on hold")

        unit.is_on_hold = False
        unit.hold_reason = None
        unit.released_by_user_id = actor.id
        unit.released_at = utcnow()

        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.RESUMED,
            description="Reposition released from material hold",
            user_id=actor.id,
            from_area=actor.area,
        )
        notification_service.publish(DomainEvent(
            kind=notification_service.REPOSITION_RESUMED,
            title="Reposition released",
            message=f"Reposition {unit.folio} was released from hold by {actor.name}",
            unit_id=unit.id,
            target_areas=privileged_areas(),
            exclude_user_ids=(actor.id,),
        ))
        return unit

    return run_in_transaction(_op)
