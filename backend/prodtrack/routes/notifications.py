# backend/prodtrack/routes/notifications.py
from flask import Blueprint, request, jsonify, g

from . import error_response
from ..decorators import require_actor
from ..services import notification_service
from ..validation import parse_bool_arg


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_actor
def list_notifications_route():
    try:
        items = notification_service.list_for_user(
            g.current_user.id, unread_only=parse_bool_arg(request.args.get("unread"))
        )
        return jsonify({"notifications": [n.to_dict() for n in items]}), 200
    except Exception as e:
        return error_response(e, "list notifications")


@notifications_bp.post("/<int:notification_id>/read")
@require_actor
def mark_read_route(notification_id: int):
    try:
        item = notification_service.mark_read(notification_id, g.current_user.id)
        return jsonify(item.to_dict()), 200
    except Exception as e:
        return error_response(e, "mark notification read")
