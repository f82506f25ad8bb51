# Overview: Transaction boundaries, row locking and retry for service operations.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from . import notification_service


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts on Unit.version_id).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_in_transaction(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Run ``func`` and commit its writes as one transaction.

    Either every ledger, unit, transfer, timer and history write made by
    ``func`` commits, or none does. Notifications queued by ``func`` are
    dispatched only after the commit succeeds and are discarded otherwise.

    ``attempts`` defaults to the TRANSACTION_ATTEMPTS setting (1: conflicts
    surface to the caller, which owns retry policy).
    """
    if attempts is None:
        attempts = current_app.config.get("TRANSACTION_ATTEMPTS", 1)

    def _op():
        notification_service.discard_pending()
        result = func()
        db.session.commit()
        return result

    try:
        result = run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
    except Exception:
        db.session.rollback()
        notification_service.discard_pending()
        raise

    notification_service.dispatch_pending()
    return result
