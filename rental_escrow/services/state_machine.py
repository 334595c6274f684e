"""Escrow status transitions and the guards that gate them.

All predicates are pure functions of ``(record, now)``. Screens and API
responses ask these instead of comparing statuses themselves.

    pending            -> payment_requested   (host, on/after check-in date)
    expired            -> payment_requested   (host re-request after cooldown)
    payment_requested  -> confirmed           (guest, before the deadline)
    payment_requested  -> declined            (guest, second request onwards)
    payment_requested  -> expired             (deadline passed)
    expired            -> refunded            (guest)
"""
from datetime import datetime, date, timezone
from zoneinfo import ZoneInfo

from rental_escrow.core.config import settings
from rental_escrow.core.errors import InvalidTransition
from rental_escrow.models.escrow import EscrowRecord, EscrowStatus, TERMINAL_STATUSES
from rental_escrow.services import countdown

REQUEST_PAYMENT = "request_payment"
CONFIRM_PAYMENT = "confirm_payment"
DECLINE_PAYMENT = "decline_payment"
EXPIRE_REQUEST = "expire_request"
REQUEST_REFUND = "request_refund"

TRANSITIONS = {
    REQUEST_PAYMENT: (
        frozenset({EscrowStatus.PENDING, EscrowStatus.EXPIRED}),
        EscrowStatus.PAYMENT_REQUESTED,
    ),
    CONFIRM_PAYMENT: (frozenset({EscrowStatus.PAYMENT_REQUESTED}), EscrowStatus.CONFIRMED),
    DECLINE_PAYMENT: (frozenset({EscrowStatus.PAYMENT_REQUESTED}), EscrowStatus.DECLINED),
    EXPIRE_REQUEST: (frozenset({EscrowStatus.PAYMENT_REQUESTED}), EscrowStatus.EXPIRED),
    REQUEST_REFUND: (frozenset({EscrowStatus.EXPIRED}), EscrowStatus.REFUNDED),
}


def local_date(now: datetime) -> date:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(settings.TIMEZONE)).date()


def is_check_in_reached(record: EscrowRecord, now: datetime) -> bool:
    return local_date(now) >= record.check_in_date


def is_terminal(record: EscrowRecord) -> bool:
    return record.escrow_status in TERMINAL_STATUSES


def effective_status(record: EscrowRecord, now: datetime) -> EscrowStatus:
    """Stored status, with an overdue payment request read as expired."""
    status = record.escrow_status
    if status == EscrowStatus.PAYMENT_REQUESTED and countdown.has_elapsed(record.request_deadline_ms, now):
        return EscrowStatus.EXPIRED
    return status


def check_request_payment(record: EscrowRecord, now: datetime) -> str | None:
    """Return why the host may not request payment now, or None if allowed."""
    status = effective_status(record, now)
    if status not in TRANSITIONS[REQUEST_PAYMENT][0]:
        return "payment cannot be requested in this status"
    if not is_check_in_reached(record, now):
        return f"check-in date {record.check_in_date.isoformat()} not reached"
    if countdown.cooldown_remaining_ms(record.last_requested_at_ms, now) > 0:
        return "payment request cooldown active"
    return None


def check_confirm(record: EscrowRecord, now: datetime) -> str | None:
    status = effective_status(record, now)
    if status == EscrowStatus.EXPIRED:
        return "payment request deadline has passed"
    if status != EscrowStatus.PAYMENT_REQUESTED:
        return "payment has not been requested"
    return None


def check_decline(record: EscrowRecord, now: datetime) -> str | None:
    if effective_status(record, now) != EscrowStatus.PAYMENT_REQUESTED:
        return "no active payment request"
    if record.payment_request_attempts < settings.REQUIRED_REQUESTS_BEFORE_DECLINE:
        return "decline is only offered from the second payment request"
    return None


def check_request_refund(record: EscrowRecord, now: datetime) -> str | None:
    if effective_status(record, now) != EscrowStatus.EXPIRED:
        return "refund is only available after an unanswered payment request"
    return None


def can_request_payment(record: EscrowRecord, now: datetime) -> bool:
    return check_request_payment(record, now) is None


def can_confirm(record: EscrowRecord, now: datetime) -> bool:
    return check_confirm(record, now) is None


def can_decline(record: EscrowRecord, now: datetime) -> bool:
    return check_decline(record, now) is None


def can_request_refund(record: EscrowRecord, now: datetime) -> bool:
    return check_request_refund(record, now) is None


GUARDS = {
    REQUEST_PAYMENT: check_request_payment,
    CONFIRM_PAYMENT: check_confirm,
    DECLINE_PAYMENT: check_decline,
    REQUEST_REFUND: check_request_refund,
}


def ensure_allowed(record: EscrowRecord, action: str, now: datetime) -> EscrowStatus:
    """Raise InvalidTransition unless ``action`` is allowed; return the target status."""
    reason = GUARDS[action](record, now)
    if reason is not None:
        raise InvalidTransition(
            record.booking_id,
            effective_status(record, now).value,
            action,
            reason,
        )
    return TRANSITIONS[action][1]
