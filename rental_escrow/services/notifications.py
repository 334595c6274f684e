"""Notification side effects of escrow transitions.

Delivery never blocks the payment flow: ``dispatch`` runs after the escrow
transaction has committed and swallows whatever the notifier raises.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from rental_escrow.models.notification import Notification

logger = logging.getLogger(__name__)

PAYMENT_REQUESTED = "payment_requested"
PAYMENT_CONFIRMED = "payment_confirmed"
PAYMENT_DECLINED = "payment_declined"
REFUND_AVAILABLE = "refund_available"
PAYMENT_REFUNDED = "payment_refunded"


class Notifier(Protocol):
    def notify(self, event: str, recipient: str, payload: dict[str, Any]) -> None:
        ...


@dataclass
class PendingNotification:
    event: str
    recipient: str
    payload: dict[str, Any] = field(default_factory=dict)


class LoggingNotifier:
    def notify(self, event: str, recipient: str, payload: dict[str, Any]) -> None:
        logger.info("Notify %s of %s: %s", recipient, event, payload)


class DatabaseNotifier:
    """In-app inbox. Writes in its own session so it cannot touch escrow state."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def notify(self, event: str, recipient: str, payload: dict[str, Any]) -> None:
        with self.session_factory() as db, db.begin():
            db.add(Notification(recipient=recipient, event=event, payload=payload))


def dispatch(notifier: Notifier, notifications: list[PendingNotification]) -> int:
    """Deliver notifications, returning how many were delivered."""
    delivered = 0
    for item in notifications:
        try:
            notifier.notify(item.event, item.recipient, item.payload)
            delivered += 1
        except Exception:
            # Don't fail the payment flow if a notification fails
            logger.exception("Error sending %s notification to %s", item.event, item.recipient)
    return delivered


def list_notifications(db: Session, recipient: str, limit: int = 50) -> list[Notification]:
    stmt = (
        select(Notification)
        .where(Notification.recipient == recipient.strip().lower())
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())
