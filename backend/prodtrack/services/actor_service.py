# Overview: Actor lookup and privilege checks used by lifecycle guards.

from __future__ import annotations

from typing import Callable, Optional

from flask import current_app

from ..errors import NotFound, PermissionDenied, ValidationError
from ..extensions import db
from ..models import Area, User


# Predicate deciding whether a user may perform a privileged action
AllowedPredicate = Callable[[int], bool]


def get_actor(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")
    if not user.is_active:
        raise PermissionDenied(f"User {user_id} is inactive")
    return user


def privileged_areas() -> tuple[str, ...]:
    return tuple(current_app.config.get("PRIVILEGED_AREAS", ()))


def is_privileged(user_id: int) -> bool:
    """True when the user is active and works in a privileged area."""
    user = db.session.get(User, user_id)
    return bool(user and user.is_active and user.area in privileged_areas())


def require_privileged(user_id: int, action: str, allowed: Optional[AllowedPredicate] = None) -> None:
    """
    Raise PermissionDenied unless ``allowed(user_id)`` holds.

    ``allowed`` defaults to ``is_privileged``; callers pass their own
    predicate to apply a different role policy.
    """
    predicate = allowed or is_privileged
    if not predicate(user_id):
        raise PermissionDenied(f"User {user_id} is not allowed to {action}")


def create_user(*, username: str, name: str, area, is_active: bool = True) -> User:
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")
    user = User(
        username=username,
        name=(name or username).strip(),
        area=Area.parse(area).value,
        is_active=is_active,
    )
    db.session.add(user)
    db.session.commit()
    return user
