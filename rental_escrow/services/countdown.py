"""Deadline arithmetic for payment requests.

Nothing here counts down. Deadlines are stored as absolute epoch
milliseconds and the remaining time is recomputed from ``now`` on every
read, so a paused client or a restarted worker never drifts.
"""
import math
from datetime import datetime, timedelta, timezone

from rental_escrow.core.config import settings

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_epoch_ms(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(value: int | None) -> datetime | None:
    if value is None:
        return None
    return _EPOCH + timedelta(milliseconds=value)


def request_deadline_ms(now: datetime) -> int:
    return to_epoch_ms(now) + settings.PAYMENT_REQUEST_WINDOW_SECONDS * 1000


def cooldown_end_ms(last_requested_at_ms: int | None) -> int | None:
    if last_requested_at_ms is None:
        return None
    return last_requested_at_ms + settings.PAYMENT_REQUEST_COOLDOWN_SECONDS * 1000


def remaining_ms(deadline_ms: int | None, now: datetime) -> int:
    if deadline_ms is None:
        return 0
    return max(0, deadline_ms - to_epoch_ms(now))


def remaining_seconds(deadline_ms: int | None, now: datetime) -> int:
    # Rounded up so "0 seconds left" only shows once the deadline has passed
    return math.ceil(remaining_ms(deadline_ms, now) / 1000)


def has_elapsed(deadline_ms: int | None, now: datetime) -> bool:
    return deadline_ms is not None and to_epoch_ms(now) >= deadline_ms


def cooldown_remaining_ms(last_requested_at_ms: int | None, now: datetime) -> int:
    return remaining_ms(cooldown_end_ms(last_requested_at_ms), now)
