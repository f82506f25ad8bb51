# Overview: Status transition tables for orders and repositions.

"""
STATE MACHINES:

    orders:
        active  -> paused | completed | deleted
        paused  -> active | deleted
        completed, deleted: terminal

    repositions:
        pendiente  -> aprobado | rechazado | cancelado | eliminado
        aprobado   -> en_proceso | completado | cancelado | eliminado
        en_proceso -> completado | cancelado | eliminado
        rechazado, completado, cancelado, eliminado: terminal

Any pair not listed is rejected with InvalidState.
"""

from __future__ import annotations

from ..errors import InvalidState, ValidationError
from ..models import OrderStatus, RepositionStatus, Unit, UnitKind


ORDER_TRANSITIONS = {
    OrderStatus.ACTIVE: {OrderStatus.PAUSED, OrderStatus.COMPLETED, OrderStatus.DELETED},
    OrderStatus.PAUSED: {OrderStatus.ACTIVE, OrderStatus.DELETED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.DELETED: set(),
}

REPOSITION_TRANSITIONS = {
    RepositionStatus.PENDIENTE: {
        RepositionStatus.APROBADO,
        RepositionStatus.RECHAZADO,
        RepositionStatus.CANCELADO,
        RepositionStatus.ELIMINADO,
    },
    RepositionStatus.APROBADO: {
        RepositionStatus.EN_PROCESO,
        RepositionStatus.COMPLETADO,
        RepositionStatus.CANCELADO,
        RepositionStatus.ELIMINADO,
    },
    RepositionStatus.EN_PROCESO: {
        RepositionStatus.COMPLETADO,
        RepositionStatus.CANCELADO,
        RepositionStatus.ELIMINADO,
    },
    RepositionStatus.RECHAZADO: set(),
    RepositionStatus.COMPLETADO: set(),
    RepositionStatus.CANCELADO: set(),
    RepositionStatus.ELIMINADO: set(),
}

_TABLES = {
    UnitKind.ORDER: (OrderStatus, ORDER_TRANSITIONS),
    UnitKind.REPOSITION: (RepositionStatus, REPOSITION_TRANSITIONS),
}

INITIAL_STATUS = {
    UnitKind.ORDER: OrderStatus.ACTIVE,
    UnitKind.REPOSITION: RepositionStatus.PENDIENTE,
}

DELETED_STATUS = {
    UnitKind.ORDER: OrderStatus.DELETED,
    UnitKind.REPOSITION: RepositionStatus.ELIMINADO,
}


def parse_kind(kind) -> UnitKind:
    try:
        return UnitKind(getattr(kind, "value", kind))
    except ValueError:
        raise ValidationError(
            f"Invalid kind '{kind}'. Must be one of: {', '.join(k.value for k in UnitKind)}"
        )


def parse_status(kind, status):
    """Coerce ``status`` into the enum of ``kind``'s lifecycle."""
    status_enum, _ = _TABLES[parse_kind(kind)]
    try:
        return status_enum(getattr(status, "value", status))
    except ValueError:
        raise ValidationError(
            f"Invalid status '{status}' for {parse_kind(kind).value}. "
            f"Must be one of: {', '.join(s.value for s in status_enum)}"
        )


def can_transition(kind, from_status, to_status) -> bool:
    _, table = _TABLES[parse_kind(kind)]
    return parse_status(kind, to_status) in table[parse_status(kind, from_status)]


def is_terminal(kind, status) -> bool:
    _, table = _TABLES[parse_kind(kind)]
    return not table[parse_status(kind, status)]


def terminal_statuses() -> set[str]:
    return {
        status.value
        for _, table in _TABLES.values()
        for status, targets in table.items()
        if not targets
    }


def require_transition(unit: Unit, to_status) -> None:
    if not can_transition(unit.kind, unit.status, to_status):
        raise InvalidState(
            f"Cannot move {unit.kind} {unit.folio} from '{unit.status}' "
            f"to '{parse_status(unit.kind, to_status).value}'"
        )


def apply_transition(unit: Unit, to_status) -> None:
    require_transition(unit, to_status)
    unit.status = parse_status(unit.kind, to_status).value
