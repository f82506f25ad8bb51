# backend/prodtrack/config.py
from __future__ import annotations
import os


def _csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/prodtrack.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///prodtrack.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Areas allowed to approve, complete, cancel and delete units
    PRIVILEGED_AREAS = _csv(os.environ.get("PRIVILEGED_AREAS", "admin,envios,operaciones"))

    # Minimum pause reason length accepted by the HTTP layer
    PAUSE_REASON_MIN_LENGTH = int(os.environ.get("PAUSE_REASON_MIN_LENGTH", "10"))

    # "stored" persists an inbox row per recipient, "null" drops everything
    NOTIFICATION_SINK = os.environ.get("NOTIFICATION_SINK", "stored")

    DEFAULT_ORDER_AREA = os.environ.get("DEFAULT_ORDER_AREA", "corte")
    DEFAULT_REPOSITION_AREA = os.environ.get("DEFAULT_REPOSITION_AREA", "patronaje")

    # Browser origins allowed to call the API (the shop-floor UI)
    CORS_ORIGINS = _csv(os.environ.get(
        "CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173",
    ))

    # Attempts per service transaction; 1 leaves retry policy to callers
    TRANSACTION_ATTEMPTS = int(os.environ.get("TRANSACTION_ATTEMPTS", "1"))
