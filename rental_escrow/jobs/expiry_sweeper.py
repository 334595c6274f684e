"""Background sweep that persists overdue payment requests as expired.

The guards already read an overdue request as expired, so this job only
keeps stored statuses (and the guest's refund notification) timely.
"""
import logging
from datetime import datetime

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session, sessionmaker

from rental_escrow.core.errors import InvalidTransition
from rental_escrow.services import countdown, escrow, escrow_store, notifications
from rental_escrow.services.notifications import Notifier, PendingNotification

logger = logging.getLogger(__name__)


def expire_overdue_requests(db: Session, now: datetime) -> tuple[list[str], list[PendingNotification]]:
    """Expire every overdue request. Caller owns the transaction."""
    expired: list[str] = []
    pending: list[PendingNotification] = []
    for record in escrow_store.find_expired(db, now):
        try:
            result = escrow.expire_request(db, record.booking_id, now)
        except InvalidTransition:
            # Guest confirmed between the scan and the update
            logger.info("Skipping booking %s, changed during sweep", record.booking_id)
            continue
        if result.notifications:
            expired.append(record.booking_id)
            pending.extend(result.notifications)
    return expired, pending


def run_sweep(session_factory: sessionmaker, notifier: Notifier, now: datetime | None = None) -> list[str]:
    now = now or countdown.utcnow()
    with session_factory() as db:
        with db.begin():
            expired, pending = expire_overdue_requests(db, now)
    notifications.dispatch(notifier, pending)
    if expired:
        logger.info("Expired %d overdue payment request(s): %s", len(expired), ", ".join(expired))
    return expired


def build_scheduler(session_factory: sessionmaker, notifier: Notifier, interval_seconds: float) -> AsyncIOScheduler:
    """Scheduler with the expiry sweep registered; the caller starts it."""
    scheduler = AsyncIOScheduler(
        executors={"default": AsyncIOExecutor()},
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 30,
        },
        timezone="UTC",
    )
    scheduler.add_job(
        run_sweep,
        trigger=IntervalTrigger(seconds=interval_seconds),
        args=[session_factory, notifier],
        id="escrow_expiry_sweep",
        name="Expire overdue payment requests",
        replace_existing=True,
    )
    logger.info("Expiry sweep scheduled every %ss", interval_seconds)
    return scheduler
