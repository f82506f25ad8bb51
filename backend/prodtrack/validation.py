# Overview: Request payload helpers for the HTTP layer.

from __future__ import annotations

from typing import Any

from flask import current_app, request

from .errors import ValidationError


def get_json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def require_fields(data: dict, *fields: str) -> None:
    missing = [f for f in fields if data.get(f) is None]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def parse_int(value: Any, field: str) -> int:
    """Strict integer coercion: rejects floats, booleans and scientific notation."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if 'e' in stripped.lower() or '.' in stripped:
            raise ValidationError(f"{field} must be a plain integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def require_reason(data: dict, *, min_length: int | None = None) -> str:
    """Mandatory free-text reason with a minimum length."""
    if min_length is None:
        min_length = current_app.config.get("PAUSE_REASON_MIN_LENGTH", 10)
    reason = (data.get("reason") or "").strip()
    if len(reason) < min_length:
        raise ValidationError(f"reason must be at least {min_length} characters")
    return reason


def parse_bool_arg(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes"}
