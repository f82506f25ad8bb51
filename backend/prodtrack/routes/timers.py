# backend/prodtrack/routes/timers.py
"""
Area timer API routes (dwell time per unit and area).
"""
from flask import Blueprint, jsonify, g

from . import error_response
from ..decorators import require_actor
from ..services import timer_service
from ..validation import get_json_body, require_fields


timers_bp = Blueprint("timers", __name__, url_prefix="/api/units/<int:unit_id>/timers")


@timers_bp.post("/<area>/start")
@require_actor
def start_timer_route(unit_id: int, area: str):
    try:
        timer = timer_service.start_live(unit_id, area, g.current_user.id)
        return jsonify(timer.to_dict()), 201
    except Exception as e:
        return error_response(e, "start timer")


@timers_bp.post("/<area>/stop")
@require_actor
def stop_timer_route(unit_id: int, area: str):
    try:
        timer = timer_service.stop_live(unit_id, area, g.current_user.id)
        return jsonify(timer.to_dict()), 200
    except Exception as e:
        return error_response(e, "stop timer")


@timers_bp.put("/<area>")
@require_actor
def set_manual_timer_route(unit_id: int, area: str):
    """
    Record a manual interval.

    Request body:
    {
        "start_date": "YYYY-MM-DD", "start_time": "HH:MM",
        "end_date": "YYYY-MM-DD", "end_time": "HH:MM"
    }

    Returns:
        201: Recorded
        400: Bad format or end before start
        409: A timer already exists for this area
    """
    try:
        data = get_json_body()
        require_fields(data, "start_date", "start_time", "end_date", "end_time")
        timer = timer_service.set_manual(
            unit_id,
            area,
            g.current_user.id,
            start_date=data["start_date"],
            start_time=data["start_time"],
            end_date=data["end_date"],
            end_time=data["end_time"],
        )
        return jsonify(timer.to_dict()), 201
    except Exception as e:
        return error_response(e, "set manual timer")


@timers_bp.get("/<area>")
@require_actor
def get_timer_route(unit_id: int, area: str):
    try:
        return jsonify(timer_service.get_timer(unit_id, area).to_dict()), 200
    except Exception as e:
        return error_response(e, "load timer")


@timers_bp.get("")
@require_actor
def list_timers_route(unit_id: int):
    try:
        timers = timer_service.list_timers(unit_id)
        return jsonify({
            "timers": [t.to_dict() for t in timers],
            "summary": timer_service.dwell_summary(unit_id),
        }), 200
    except Exception as e:
        return error_response(e, "list timers")
