# Overview: Domain error hierarchy shared by services and routes.

"""
Every failure the core can report is one of these classes. Routes map them
to HTTP responses through ``status_code``; services never swallow them.
"""

from __future__ import annotations


class ProdtrackError(Exception):
    """Base class for domain errors surfaced to callers."""

    status_code = 400


class NotFound(ProdtrackError):
    """Unit, transfer, timer or user does not exist."""

    status_code = 404


class ValidationError(ProdtrackError, ValueError):
    """400-level input problem (bad pieces, dates, missing reason)."""

    status_code = 400


class InvalidState(ProdtrackError):
    """Transition not legal from the current status."""

    status_code = 409


class InsufficientCustody(ProdtrackError):
    """Area does not hold the pieces an operation requires."""

    status_code = 409


class DuplicateTimer(ProdtrackError):
    """A (unit, area) timer was already recorded; timers are write-once."""

    status_code = 409


class PermissionDenied(ProdtrackError):
    """Actor's area is not allowed to perform the operation."""

    status_code = 403
