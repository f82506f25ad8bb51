# backend/prodtrack/routes/transfers.py
"""
Inter-area transfer API routes.
"""
from flask import Blueprint, request, jsonify, g

from . import error_response
from ..decorators import require_actor
from ..errors import PermissionDenied, ValidationError
from ..services import actor_service, transfer_service
from ..validation import get_json_body, parse_int, require_fields


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


def _require_destination(transfer) -> None:
    """Only the destination area (or a privileged area) may act on a transfer."""
    user = g.current_user
    if user.area != transfer.to_area and not actor_service.is_privileged(user.id):
        raise PermissionDenied(f"Transfer {transfer.id} is addressed to {transfer.to_area}")


@transfers_bp.post("")
@require_actor
def propose_transfer_route():
    """
    Propose a transfer.

    Request body:
    {
        "unit_id": int,
        "from_area": str (optional, defaults to the caller's area),
        "to_area": str,
        "pieces": int,
        "notes": str (optional)
    }

    Returns:
        201: Transfer created (pending)
        400: Invalid request
        409: Source area lacks the pieces, or unit closed
    """
    try:
        data = get_json_body()
        require_fields(data, "unit_id", "to_area", "pieces")
        transfer = transfer_service.propose_transfer(
            unit_id=parse_int(data["unit_id"], "unit_id"),
            from_area=data.get("from_area") or g.current_user.area,
            to_area=data["to_area"],
            pieces=parse_int(data["pieces"], "pieces"),
            created_by=g.current_user.id,
            notes=data.get("notes"),
        )
        return jsonify(transfer.to_dict()), 201
    except Exception as e:
        return error_response(e, "propose transfer")


@transfers_bp.post("/<int:transfer_id>/accept")
@require_actor
def accept_transfer_route(transfer_id: int):
    """
    Accept a transfer and move custody.

    Returns:
        200: Transfer accepted
        403: Caller is not the destination area
        404: Transfer not found
        409: Already processed, or source no longer holds the pieces
    """
    try:
        _require_destination(transfer_service.get_transfer(transfer_id))
        transfer = transfer_service.accept_transfer(transfer_id, g.current_user.id)
        return jsonify(transfer.to_dict()), 200
    except Exception as e:
        return error_response(e, "accept transfer")


@transfers_bp.post("/<int:transfer_id>/reject")
@require_actor
def reject_transfer_route(transfer_id: int):
    try:
        _require_destination(transfer_service.get_transfer(transfer_id))
        transfer = transfer_service.reject_transfer(transfer_id, g.current_user.id)
        return jsonify(transfer.to_dict()), 200
    except Exception as e:
        return error_response(e, "reject transfer")


@transfers_bp.get("/pending")
@require_actor
def list_pending_route():
    """
    Pending transfers.

    Query params:
    - unit_id: pending transfers of one unit
    - area: pending transfers addressed to an area (defaults to the caller's)
    """
    try:
        unit_id = request.args.get("unit_id")
        if unit_id is not None:
            transfers = transfer_service.pending_for_unit(parse_int(unit_id, "unit_id"))
        else:
            transfers = transfer_service.pending_for_area(request.args.get("area") or g.current_user.area)
        return jsonify({"transfers": [t.to_dict() for t in transfers]}), 200
    except Exception as e:
        return error_response(e, "list pending transfers")


@transfers_bp.get("/<int:transfer_id>")
@require_actor
def get_transfer_route(transfer_id: int):
    try:
        return jsonify(transfer_service.get_transfer(transfer_id).to_dict()), 200
    except Exception as e:
        return error_response(e, "load transfer")


@transfers_bp.get("")
@require_actor
def list_unit_transfers_route():
    """All transfers of a unit. Query params: unit_id (required)"""
    try:
        unit_id = request.args.get("unit_id")
        if unit_id is None:
            raise ValidationError("unit_id query parameter is required")
        transfers = transfer_service.list_for_unit(parse_int(unit_id, "unit_id"))
        return jsonify({"transfers": [t.to_dict() for t in transfers]}), 200
    except Exception as e:
        return error_response(e, "list transfers")
