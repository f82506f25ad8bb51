# Overview: Area-time ledger; one write-once dwell interval per unit and area.

"""
Area Timer Service

WHY: Track how long a unit spends in each area, either with a live
start/stop timer or with an interval entered by hand afterwards.

WRITE-ONCE: a (unit, area) pair gets exactly one timer row. Once it exists
(running, stopped or manual) no other start or manual entry is accepted.
Corrections are an administrative task outside this service.
"""

from __future__ import annotations

import re
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateTimer, InvalidState, NotFound, ValidationError
from ..extensions import db
from ..models import AREA_FLOW, Area, AreaTimer, HistoryAction
from ..time_utils import elapsed_minutes, format_clock, format_duration, utcnow
from . import history_service, transitions
from .actor_service import get_actor
from .concurrency import lock_for_update, run_in_transaction
from .unit_service import get_unit


TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")
DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def _require_open(unit) -> None:
    if transitions.is_terminal(unit.kind, unit.status):
        raise InvalidState(f"Unit {unit.folio} is {unit.status}; timers are closed")


def _existing(unit_id: int, area: Area) -> AreaTimer | None:
    return db.session.query(AreaTimer).filter_by(unit_id=unit_id, area=area.value).first()


def _insert(timer: AreaTimer) -> None:
    """Add a timer row; a concurrent writer for the same pair loses with DuplicateTimer."""
    try:
        with db.session.begin_nested():
            db.session.add(timer)
    except IntegrityError:
        raise DuplicateTimer(
            f"A timer already exists for unit {timer.unit_id} in area {timer.area}"
        )


def normalize_date(value) -> str:
    """
    Reduce an incoming date to YYYY-MM-DD.

    ISO datetimes ("2025-03-01T08:00:00Z") keep their date part only.
    """
    if value is None or not str(value).strip():
        raise ValidationError("date is required")
    value = str(value).strip()
    if "T" in value:
        value = value.split("T", 1)[0]
    if not DATE_RE.fullmatch(value):
        raise ValidationError(f"Invalid date '{value}'. Use YYYY-MM-DD")
    return value


def normalize_time(value) -> str:
    value = (str(value) if value is not None else "").strip()
    if not TIME_RE.match(value):
        raise ValidationError(f"Invalid time '{value}'. Use HH:MM")
    hours, minutes = value.split(":")
    return f"{int(hours):02d}:{minutes}"


def _combine(date_str: str, time_str: str) -> datetime:
    try:
        return datetime.strptime(f"{date_str} {time_str}", "%Y-%m-%d %H:%M")
    except ValueError:
        raise ValidationError(f"Invalid date/time '{date_str} {time_str}'")


def start_live(unit_id: int, area, user_id: int) -> AreaTimer:
    """
    Start a live timer for a unit in an area.

    Raises:
        DuplicateTimer: A running, stopped or manual timer already exists
        InvalidState: Unit is in a terminal status
    """
    area = Area.parse(area)

    def _op():
        actor = get_actor(user_id)
        unit = get_unit(unit_id)
        _require_open(unit)
        if _existing(unit.id, area):
            raise DuplicateTimer(f"A timer already exists for {unit.folio} in area {area.value}")

        timer = AreaTimer(
            unit_id=unit.id,
            area=area.value,
            user_id=actor.id,
            start_time=utcnow(),
            is_running=True,
        )
        _insert(timer)

        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.TIMER_STARTED,
            description=f"Timer started by {actor.name} in area {area.value}",
            user_id=actor.id,
            to_area=area,
        )
        return timer

    return run_in_transaction(_op)


def stop_live(unit_id: int, area, user_id: int) -> AreaTimer:
    """
    Stop the running timer and record its elapsed whole minutes.

    Raises:
        NotFound: No running timer for (unit, area)
    """
    area = Area.parse(area)

    def _op():
        actor = get_actor(user_id)
        unit = get_unit(unit_id)
        timer = lock_for_update(
            db.session.query(AreaTimer).filter_by(unit_id=unit.id, area=area.value, is_running=True)
        ).first()
        if timer is None:
            raise NotFound(f"No running timer for {unit.folio} in area {area.value}")

        timer.end_time = utcnow()
        timer.elapsed_minutes = max(elapsed_minutes(timer.start_time, timer.end_time), 0)
        timer.is_running = False
        db.session.flush()

        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.TIMER_STOPPED,
            description=(
                f"Timer stopped by {actor.name} in area {area.value}. "
                f"Elapsed time: {format_clock(timer.elapsed_minutes)}"
            ),
            user_id=actor.id,
            to_area=area,
        )
        return timer

    return run_in_transaction(_op)


def set_manual(
    unit_id: int,
    area,
    user_id: int,
    *,
    start_date,
    start_time,
    end_date,
    end_time,
) -> AreaTimer:
    """
    Record a manually entered interval for a unit in an area.

    The span may cross midnight or several days. A duplicate is rejected
    whatever values are supplied.

    Raises:
        DuplicateTimer: A timer already exists for (unit, area)
        ValidationError: Bad date/time format or end before start
        InvalidState: Unit is in a terminal status
    """
    area = Area.parse(area)

    def _op():
        actor = get_actor(user_id)
        unit = get_unit(unit_id)
        _require_open(unit)
        if _existing(unit.id, area):
            raise DuplicateTimer(
                f"Time already recorded for {unit.folio} in area {area.value}; it cannot be modified"
            )

        sd, ed = normalize_date(start_date), normalize_date(end_date)
        st, et = normalize_time(start_time), normalize_time(end_time)
        minutes = elapsed_minutes(_combine(sd, st), _combine(ed, et))
        if minutes < 0:
            raise ValidationError("End date/time must not be before start date/time")

        timer = AreaTimer(
            unit_id=unit.id,
            area=area.value,
            user_id=actor.id,
            manual_start_date=sd,
            manual_start_time=st,
            manual_end_date=ed,
            manual_end_time=et,
            elapsed_minutes=minutes,
            is_running=False,
        )
        _insert(timer)

        history_service.record(
            unit_id=unit.id,
            action=HistoryAction.MANUAL_TIME_SET,
            description=(
                f"Manual time recorded in area {area.value}: {sd} {st} - {ed} {et} "
                f"- Duration: {format_duration(minutes)}"
            ),
            user_id=actor.id,
            to_area=area,
        )
        return timer

    return run_in_transaction(_op)


def get_timer(unit_id: int, area) -> AreaTimer:
    area = Area.parse(area)
    unit = get_unit(unit_id)
    timer = _existing(unit.id, area)
    if timer is None:
        raise NotFound(f"No timer for {unit.folio} in area {area.value}")
    return timer


def list_timers(unit_id: int) -> list[AreaTimer]:
    unit = get_unit(unit_id)
    return _sorted_by_flow(db.session.query(AreaTimer).filter_by(unit_id=unit.id).all())


def _sorted_by_flow(timers: list[AreaTimer]) -> list[AreaTimer]:
    order = {area.value: index for index, area in enumerate(AREA_FLOW)}
    return sorted(timers, key=lambda t: (order.get(t.area, len(order)), t.area))


def dwell_summary(unit_id: int) -> dict:
    """Per-area and total dwell time for a unit, in production-flow order."""
    unit = get_unit(unit_id)
    timers = list_timers(unit.id)

    areas = []
    total = 0
    for timer in timers:
        if timer.elapsed_minutes is None:
            continue
        total += timer.elapsed_minutes
        areas.append({
            "area": timer.area,
            "minutes": timer.elapsed_minutes,
            "formatted": format_duration(timer.elapsed_minutes),
            "source": "manual" if timer.is_manual else "live",
        })

    return {
        "unit_id": unit.id,
        "folio": unit.folio,
        "current_area": unit.current_area,
        "areas": areas,
        "running": [t.area for t in timers if t.is_running],
        "total_minutes": total,
        "total_formatted": format_duration(total),
    }
