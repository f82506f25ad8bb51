# backend/prodtrack/routes/units.py
"""
Unit registry and status lifecycle API routes.

SECURITY:
- All routes require an acting user (X-User-Id, authenticated upstream)
- User IDs are taken from g.current_user, NOT from the request body
- Approve, cancel and delete are limited to privileged areas; complete is
  checked by the service's role predicate
- Material hold and release are limited to the warehouse and privileged areas
"""

from flask import Blueprint, request, jsonify, g

from . import error_response
from ..decorators import require_actor, require_privileged
from ..services import history_service, ledger_service, lifecycle_service, transfer_service, unit_service
from ..validation import get_json_body, parse_bool_arg, parse_int, require_fields, require_reason


units_bp = Blueprint("units", __name__, url_prefix="/api/units")


def _unit_payload(unit) -> dict:
    return {
        "unit": unit.to_dict(),
        "area_records": [r.to_dict() for r in ledger_service.get_area_records(unit.id)],
    }


@units_bp.post("")
@require_actor
def create_unit_route():
    """
    Create an order or reposition.

    Request body:
    {
        "kind": "order" | "reposition",
        "total_pieces": int,
        "initial_area": str (optional),
        "folio": str (optional),
        "title": str, "client_name": str, "reposition_type": str, "notes": str (optional)
    }

    Returns:
        201: Unit created with its pieces seeded in the initial area
        400: Invalid request
    """
    try:
        data = get_json_body()
        require_fields(data, "kind", "total_pieces")
        unit = unit_service.create_unit(
            kind=data["kind"],
            total_pieces=parse_int(data["total_pieces"], "total_pieces"),
            created_by=g.current_user.id,
            initial_area=data.get("initial_area"),
            folio=data.get("folio"),
            title=data.get("title"),
            client_name=data.get("client_name"),
            reposition_type=data.get("reposition_type"),
            notes=data.get("notes"),
        )
        return jsonify(_unit_payload(unit)), 201
    except Exception as e:
        return error_response(e, "create unit")


@units_bp.get("")
@require_actor
def list_units_route():
    """
    List units.

    Query params:
    - area: units with custody in this area (open units unless include_closed)
    - kind, status: filters when no area is given
    """
    try:
        area = request.args.get("area")
        if area:
            units = unit_service.list_units_by_area(
                area, include_closed=parse_bool_arg(request.args.get("include_closed"))
            )
        else:
            units = unit_service.list_units(
                kind=request.args.get("kind"),
                status=request.args.get("status"),
                include_deleted=parse_bool_arg(request.args.get("include_deleted")),
            )
        return jsonify({"units": [u.to_dict() for u in units]}), 200
    except Exception as e:
        return error_response(e, "list units")


@units_bp.get("/<int:unit_id>")
@require_actor
def get_unit_route(unit_id: int):
    try:
        unit = unit_service.get_unit(unit_id)
        payload = _unit_payload(unit)
        payload["pending_transfers"] = [t.to_dict() for t in transfer_service.pending_for_unit(unit.id)]
        return jsonify(payload), 200
    except Exception as e:
        return error_response(e, "load unit")


@units_bp.delete("/<int:unit_id>")
@require_actor
@require_privileged
def delete_unit_route(unit_id: int):
    """Soft-delete a unit (status deleted / eliminado)."""
    try:
        unit = lifecycle_service.delete_unit(unit_id, g.current_user.id)
        return jsonify({"unit": unit.to_dict()}), 200
    except Exception as e:
        return error_response(e, "delete unit")


@units_bp.get("/<int:unit_id>/pieces")
@require_actor
def get_pieces_route(unit_id: int):
    try:
        unit = unit_service.get_unit(unit_id)
        records = ledger_service.get_area_records(unit.id)
        return jsonify({
            "unit_id": unit.id,
            "total_pieces": unit.total_pieces,
            "current_area": unit.current_area,
            "area_records": [r.to_dict() for r in records],
        }), 200
    except Exception as e:
        return error_response(e, "load pieces")


@units_bp.get("/<int:unit_id>/history")
@require_actor
def get_history_route(unit_id: int):
    try:
        events = history_service.get_history(unit_id)
        return jsonify({"history": [e.to_dict() for e in events]}), 200
    except Exception as e:
        return error_response(e, "load history")


@units_bp.post("/<int:unit_id>/pause")
@require_actor
def pause_unit_route(unit_id: int):
    """
    Pause an order. Only the area holding every piece may pause.

    Request body: {"reason": str (min length PAUSE_REASON_MIN_LENGTH)}

    Returns:
        200: Paused
        400: Reason missing or too short
        409: Partial custody or wrong status
    """
    try:
        reason = require_reason(get_json_body())
        unit = lifecycle_service.pause_unit(unit_id, g.current_user.id, reason)
        return jsonify({"unit": unit.to_dict()}), 200
    except Exception as e:
        return error_response(e, "pause unit")


@units_bp.post("/<int:unit_id>/resume")
@require_actor
def resume_unit_route(unit_id: int):
    try:
        unit = lifecycle_service.resume_unit(unit_id, g.current_user.id)
        return jsonify({"unit": unit.to_dict()}), 200
    except Exception as e:
        return error_response(e, "resume unit")


@units_bp.post("/<int:unit_id>/complete")
@require_actor
def complete_unit_route(unit_id: int):
    try:
        data = get_json_body()
        unit = lifecycle_service.complete_unit(unit_id, g.current_user.id, data.get("notes"))
        return jsonify({"unit": unit.to_dict()}), 200
    except Exception as e:
        return error_response(e, "complete unit")


@units_bp.post("/<int:unit_id>/approve")
@require_actor
@require_privileged
def approve_reposition_route(unit_id: int):
    """
    Approve or reject a pending reposition.

    Request body: {"action": "aprobado" | "rechazado", "notes": str (optional)}
    """
    try:
        data = get_json_body()
        require_fields(data, "action")
        unit = lifecycle_service.approve_reposition(
            unit_id, g.current_user.id, data["action"], data.get("notes")
        )
        return jsonify({"unit": unit.to_dict()}), 200
    except Exception as e:
        return error_response(e, "approve reposition")


@units_bp.post("/<int:unit_id>/request-completion")
@require_actor
def request_completion_route(unit_id: int):
    try:
        data = get_json_body()
        unit = lifecycle_service.request_completion(unit_id, g.current_user.id, data.get("notes"))
        return jsonify({"unit": unit.to_dict()}), 202
    except Exception as e:
        return error_response(e, "request completion")


@units_bp.post("/<int:unit_id>/cancel")
@require_actor
@require_privileged
def cancel_reposition_route(unit_id: int):
    """Cancel a reposition. Request body: {"reason": str}"""
    try:
        data = get_json_body()
        require_fields(data, "reason")
        unit = lifecycle_service.cancel_reposition(unit_id, g.current_user.id, data["reason"])
        return jsonify({"unit": unit.to_dict()}), 200
    except Exception as e:
        return error_response(e, "cancel reposition")


@units_bp.post("/<int:unit_id>/hold")
@require_actor
def hold_reposition_route(unit_id: int):
    """
    Put a reposition on material hold. Status is unchanged.

    Request body: {"reason": str}

    Returns:
        200: On hold
        400: Reason missing
        403: Caller is not in the warehouse or a privileged area
        409: Not a reposition, closed, or already on hold
    """
    try:
        data = get_json_body()
        require_fields(data, "reason")
        unit = lifecycle_service.hold_reposition(unit_id, g.current_user.id, data["reason"])
        return jsonify({"unit": unit.to_dict()}), 200
    except Exception as e:
        return error_response(e, "hold reposition")


@units_bp.post("/<int:unit_id>/release")
@require_actor
def release_reposition_route(unit_id: int):
    try:
        unit = lifecycle_service.release_reposition(unit_id, g.current_user.id)
        return jsonify({"unit": unit.to_dict()}), 200
    except Exception as e:
        return error_response(e, "release reposition")
