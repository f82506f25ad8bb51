# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .models import User
from .services import actor_service


ACTOR_HEADER = "X-User-Id"


def require_actor(f):
    """
    Resolve the acting user and store it on ``g.current_user``.

    Identity is authenticated upstream; the gateway forwards the user id in
    the X-User-Id header. Returns 401 if it is missing, malformed, unknown
    or inactive.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(ACTOR_HEADER, "").strip()
        if not (raw.isascii() and raw.isdigit()):
            return jsonify({"error": "Authentication required"}), 401

        user = db.session.get(User, int(raw))
        if user is None or not user.is_active:
            return jsonify({"error": "Unknown or inactive user"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_privileged(f):
    """Require the acting user to belong to a privileged area."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, "current_user"):
            return jsonify({"error": "Authentication required"}), 401

        if not actor_service.is_privileged(g.current_user.id):
            return jsonify({
                "error": "Permission denied",
                "message": f"Area {g.current_user.area} cannot perform this action",
            }), 403

        return f(*args, **kwargs)

    return decorated_function
