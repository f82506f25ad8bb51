from flask import current_app, jsonify
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ProdtrackError
from ..extensions import db


def error_response(exc: Exception, action: str):
    """Roll back and turn an exception into a JSON error response."""
    db.session.rollback()
    if isinstance(exc, ProdtrackError):
        return jsonify({"error": str(exc), "type": type(exc).__name__}), exc.status_code
    if isinstance(exc, StaleDataError):
        current_app.logger.info("Concurrent update while trying to %s", action)
        return jsonify({
            "error": "The unit was modified by another request, please retry",
            "type": "ConcurrentUpdate",
        }), 409
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500
