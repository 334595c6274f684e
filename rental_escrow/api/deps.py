from datetime import datetime
from functools import lru_cache

from rental_escrow.core.config import settings
from rental_escrow.db.session import SessionLocal
from rental_escrow.services import countdown
from rental_escrow.services.notifications import DatabaseNotifier, LoggingNotifier, Notifier


def get_clock() -> datetime:
    return countdown.utcnow()


@lru_cache
def get_notifier() -> Notifier:
    if settings.NOTIFIER == "logging":
        return LoggingNotifier()
    return DatabaseNotifier(SessionLocal)
