# Overview: Append-only audit log of unit mutations.

from __future__ import annotations

from typing import Optional

from ..errors import NotFound
from ..extensions import db
from ..models import HistoryEvent, HistoryAction, Unit


def _value(area) -> Optional[str]:
    if area is None:
        return None
    return getattr(area, "value", area)


def record(
    *,
    unit_id: int,
    action: HistoryAction,
    description: str,
    user_id: int,
    from_area=None,
    to_area=None,
    pieces: int | None = None,
) -> HistoryEvent:
    """
    Append a history event inside the caller's transaction.

    - No domain logic here.
    - No deletes/updates of existing events.
    """
    event = HistoryEvent(
        unit_id=unit_id,
        action=HistoryAction(action).value,
        description=description,
        user_id=user_id,
        from_area=_value(from_area),
        to_area=_value(to_area),
        pieces=pieces,
    )
    db.session.add(event)
    db.session.flush()  # ensures event.id is assigned without committing
    return event


def get_history(unit_id: int) -> list[HistoryEvent]:
    if db.session.get(Unit, unit_id) is None:
        raise NotFound(f"Unit {unit_id} not found")
    return (
        db.session.query(HistoryEvent)
        .filter_by(unit_id=unit_id)
        .order_by(HistoryEvent.created_at.asc(), HistoryEvent.id.asc())
        .all()
    )
