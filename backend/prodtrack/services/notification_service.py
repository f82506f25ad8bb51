# Overview: Domain events and the pluggable sink they are delivered to.

"""
Notification fan-out.

Services call ``publish(event)`` while their transaction is open. Events sit
in the session's outbox until ``run_in_transaction`` commits, then go to the
sink configured on the app. Delivery is fire-and-forget: a failing sink is
logged and the event dropped; the committed work is never affected.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import NotFound
from ..extensions import db
from ..models import Notification, User


# Event kinds
NEW_REPOSITION = "new_reposition"
TRANSFER_CREATED = "transfer_created"
TRANSFER_PROCESSED = "transfer_processed"
PARTIAL_TRANSFER_WARNING = "partial_transfer_warning"
REPOSITION_APPROVED = "reposition_approved"
REPOSITION_REJECTED = "reposition_rejected"
REPOSITION_COMPLETED = "reposition_completed"
REPOSITION_CANCELED = "reposition_canceled"
UNIT_DELETED = "unit_deleted"
COMPLETION_APPROVAL_NEEDED = "completion_approval_needed"
REPOSITION_PAUSED = "reposition_paused"
REPOSITION_RESUMED = "reposition_resumed"

_OUTBOX_KEY = "prodtrack.pending_notifications"
_SINK_KEY = "prodtrack.notification_sink"


@dataclass(frozen=True)
class DomainEvent:
    kind: str
    title: str
    message: str
    unit_id: int | None = None
    target_areas: tuple[str, ...] = ()
    target_user_ids: tuple[int, ...] = ()
    exclude_user_ids: tuple[int, ...] = ()

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "title": self.title,
            "message": self.message,
            "unit_id": self.unit_id,
            "target_areas": list(self.target_areas),
            "target_user_ids": list(self.target_user_ids),
        }


class NotificationSink:
    """Delivery channel for domain events (push, socket, inbox...)."""

    def emit(self, event: DomainEvent) -> None:
        raise NotImplementedError


class NullNotificationSink(NotificationSink):
    def emit(self, event: DomainEvent) -> None:
        return None


class StoredNotificationSink(NotificationSink):
    """
    Persist one Notification row per recipient.

    Runs in its own transaction, after the triggering one has committed.
    """

    def emit(self, event: DomainEvent) -> None:
        try:
            for user_id in resolve_recipients(event):
                db.session.add(Notification(
                    user_id=user_id,
                    unit_id=event.unit_id,
                    kind=event.kind,
                    title=event.title,
                    message=event.message,
                ))
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise


def resolve_recipients(event: DomainEvent) -> list[int]:
    """Active users in the target areas plus explicit targets, minus exclusions."""
    recipients = set(event.target_user_ids)
    if event.target_areas:
        rows = (
            db.session.query(User.id)
            .filter(User.area.in_(event.target_areas), User.is_active.is_(True))
            .all()
        )
        recipients.update(r[0] for r in rows)
    recipients.difference_update(event.exclude_user_ids)
    return sorted(recipients)


def init_app(app, sink: NotificationSink | None = None) -> None:
    if sink is None:
        name = app.config.get("NOTIFICATION_SINK", "stored")
        if name == "stored":
            sink = StoredNotificationSink()
        elif name == "null":
            sink = NullNotificationSink()
        else:
            raise ValueError(f"Unknown NOTIFICATION_SINK '{name}'. Must be one of: null, stored")
    app.extensions[_SINK_KEY] = sink


def get_sink() -> NotificationSink:
    return current_app.extensions[_SINK_KEY]


def set_sink(app, sink: NotificationSink) -> None:
    app.extensions[_SINK_KEY] = sink


def publish(event: DomainEvent) -> None:
    """Queue an event on the current transaction's outbox."""
    db.session.info.setdefault(_OUTBOX_KEY, []).append(event)


def discard_pending() -> None:
    db.session.info.pop(_OUTBOX_KEY, None)


def dispatch_pending() -> int:
    """
    Hand queued events to the sink. Returns the number delivered.

    A sink failure drops that event only; it is logged, never raised.
    """
    events = db.session.info.pop(_OUTBOX_KEY, [])
    if not events:
        return 0

    sink = get_sink()
    delivered = 0
    for event in events:
        try:
            sink.emit(event)
            delivered += 1
        except Exception:
            current_app.logger.warning(
                "Dropped notification %s for unit %s", event.kind, event.unit_id, exc_info=True
            )
    return delivered


def list_for_user(user_id: int, *, unread_only: bool = False, limit: int = 50) -> list[Notification]:
    query = db.session.query(Notification).filter_by(user_id=user_id)
    if unread_only:
        query = query.filter_by(is_read=False)
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def mark_read(notification_id: int, user_id: int) -> Notification:
    notification = db.session.query(Notification).filter_by(id=notification_id, user_id=user_id).first()
    if not notification:
        raise NotFound(f"Notification {notification_id} not found")
    notification.is_read = True
    db.session.commit()
    return notification
