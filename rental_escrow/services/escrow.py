"""Escrow lifecycle for booking payments.

The guest's payment is captured by the gateway before the record exists.
From there the host asks for the money on or after check-in, the guest
has a short window to confirm, and an unanswered request turns into a
refund option. Every operation here runs inside the caller's transaction:
the ledger write and the status write commit together or not at all.
Notifications are returned, not sent; the caller dispatches them after
commit.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from rental_escrow.core.config import settings
from rental_escrow.core.errors import InvalidAmount
from rental_escrow.models.booking import Booking, BookingStatus
from rental_escrow.models.escrow import EscrowRecord, EscrowStatus
from rental_escrow.models.ledger import LedgerKind
from rental_escrow.services import countdown, escrow_store, ledger, notifications
from rental_escrow.services import state_machine as sm
from rental_escrow.services.notifications import PendingNotification

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    record: EscrowRecord
    notifications: list[PendingNotification] = field(default_factory=list)


def release_reference(booking_id: str) -> str:
    return f"escrow-release:{booking_id}"


def refund_reference(booking_id: str) -> str:
    return f"escrow-refund:{booking_id}"


def wallet_payment_reference(booking_id: str) -> str:
    return f"escrow-payment:{booking_id}"


def booking_fees() -> int:
    return settings.CLEANING_FEE + settings.SERVICE_FEE


def _set_booking_status(db: Session, booking_id: str, status: str) -> None:
    # Imported legacy escrows may have no local booking row
    booking = db.get(Booking, booking_id)
    if booking is not None:
        booking.status = status


def create_escrow(
    db: Session,
    booking: Booking,
    payment_reference: str | None = None,
    fund_from_wallet: bool = False,
) -> EscrowRecord:
    """Open escrow for a booking whose payment has been captured.

    With ``fund_from_wallet`` the guest pays from their wallet balance and
    the debit lands in the same transaction as the new record.
    """
    amount = booking.total_amount
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(amount)

    record = EscrowRecord(
        booking_id=booking.id,
        guest_account=ledger.normalize_owner(booking.guest_account),
        host_account=ledger.normalize_owner(booking.host_account),
        amount=amount,
        currency=settings.DEFAULT_CURRENCY,
        status=EscrowStatus.PENDING.value,
        payment_request_attempts=0,
        check_in_date=booking.check_in_date,
        payment_reference=payment_reference,
        version=1,
    )
    escrow_store.create(db, record)

    if fund_from_wallet:
        ledger.debit(
            db,
            record.guest_account,
            amount,
            LedgerKind.PAYMENT,
            wallet_payment_reference(booking.id),
            description=f"Escrow payment for booking {booking.id}",
        )
        if record.payment_reference is None:
            record.payment_reference = wallet_payment_reference(booking.id)

    booking.status = BookingStatus.CONFIRMED
    db.flush()
    logger.info("Escrow opened for booking %s: %s %s", booking.id, amount, record.currency)
    return record


def get_escrow(db: Session, booking_id: str) -> EscrowRecord:
    return escrow_store.get(db, booking_id)


def request_payment(db: Session, booking_id: str, now: datetime) -> TransitionResult:
    record = escrow_store.get_for_update(db, booking_id)
    stored = record.escrow_status
    target = sm.ensure_allowed(record, sm.REQUEST_PAYMENT, now)

    now_ms = countdown.to_epoch_ms(now)
    deadline_ms = countdown.request_deadline_ms(now)
    escrow_store.compare_and_set(
        db, record, stored, sm.REQUEST_PAYMENT,
        status=target.value,
        payment_request_attempts=record.payment_request_attempts + 1,
        request_deadline_ms=deadline_ms,
        last_requested_at_ms=now_ms,
    )
    _set_booking_status(db, booking_id, BookingStatus.PAYMENT_REQUESTED)
    logger.info(
        "Payment requested for booking %s (attempt %s), deadline %s",
        booking_id, record.payment_request_attempts, countdown.from_epoch_ms(deadline_ms).isoformat(),
    )

    return TransitionResult(record, [
        PendingNotification(
            notifications.PAYMENT_REQUESTED,
            record.guest_account,
            {
                "booking_id": booking_id,
                "amount": record.amount,
                "attempt": record.payment_request_attempts,
                "deadline_ms": deadline_ms,
                "can_decline": sm.can_decline(record, now),
            },
        )
    ])


def confirm_payment(db: Session, booking_id: str, now: datetime) -> TransitionResult:
    record = escrow_store.get_for_update(db, booking_id)
    target = sm.ensure_allowed(record, sm.CONFIRM_PAYMENT, now)

    fees = booking_fees()
    host_payout = max(0, record.amount - fees)
    # Ledger first, status second; both roll back together on failure
    if host_payout > 0:
        ledger.credit(
            db,
            record.host_account,
            host_payout,
            LedgerKind.TRANSFER_IN,
            release_reference(booking_id),
            description=f"Escrow payment released for booking {booking_id}",
        )
    escrow_store.compare_and_set(
        db, record, EscrowStatus.PAYMENT_REQUESTED, sm.CONFIRM_PAYMENT,
        status=target.value,
        request_deadline_ms=None,
        host_payout=host_payout,
        fees=fees,
    )
    _set_booking_status(db, booking_id, BookingStatus.PAYMENT_CONFIRMED)
    logger.info("Released %s to host %s for booking %s", host_payout, record.host_account, booking_id)

    return TransitionResult(record, [
        PendingNotification(
            notifications.PAYMENT_CONFIRMED,
            record.host_account,
            {"booking_id": booking_id, "amount": host_payout, "fees": fees},
        )
    ])


def decline_payment(db: Session, booking_id: str, reason: str | None, now: datetime) -> TransitionResult:
    record = escrow_store.get_for_update(db, booking_id)
    target = sm.ensure_allowed(record, sm.DECLINE_PAYMENT, now)
    reason = reason or "Payment declined by guest"

    escrow_store.compare_and_set(
        db, record, EscrowStatus.PAYMENT_REQUESTED, sm.DECLINE_PAYMENT,
        status=target.value,
        request_deadline_ms=None,
        decline_reason=reason,
    )
    _set_booking_status(db, booking_id, BookingStatus.CANCELLED)
    logger.info("Guest declined payment for booking %s: %s", booking_id, reason)

    return TransitionResult(record, [
        PendingNotification(
            notifications.PAYMENT_DECLINED,
            record.host_account,
            {"booking_id": booking_id, "reason": reason},
        )
    ])


def expire_request(db: Session, booking_id: str, now: datetime) -> TransitionResult:
    """Persist an overdue payment request as expired; otherwise a no-op."""
    record = escrow_store.get_for_update(db, booking_id)
    if record.escrow_status != EscrowStatus.PAYMENT_REQUESTED:
        return TransitionResult(record)
    if not countdown.has_elapsed(record.request_deadline_ms, now):
        return TransitionResult(record)

    escrow_store.compare_and_set(
        db, record, EscrowStatus.PAYMENT_REQUESTED, sm.EXPIRE_REQUEST,
        status=EscrowStatus.EXPIRED.value,
        request_deadline_ms=None,
    )
    logger.info("Payment request for booking %s expired unanswered", booking_id)

    return TransitionResult(record, [
        PendingNotification(
            notifications.REFUND_AVAILABLE,
            record.guest_account,
            {"booking_id": booking_id, "amount": record.amount},
        )
    ])


def request_refund(db: Session, booking_id: str, now: datetime) -> TransitionResult:
    record = escrow_store.get_for_update(db, booking_id)
    stored = record.escrow_status
    target = sm.ensure_allowed(record, sm.REQUEST_REFUND, now)

    ledger.credit(
        db,
        record.guest_account,
        record.amount,
        LedgerKind.TRANSFER_IN,
        refund_reference(booking_id),
        description=f"Escrow refund for booking {booking_id}",
    )
    escrow_store.compare_and_set(
        db, record, stored, sm.REQUEST_REFUND,
        status=target.value,
        request_deadline_ms=None,
    )
    _set_booking_status(db, booking_id, BookingStatus.CANCELLED)
    logger.info("Refunded %s to guest %s for booking %s", record.amount, record.guest_account, booking_id)

    return TransitionResult(record, [
        PendingNotification(
            notifications.PAYMENT_REFUNDED,
            record.host_account,
            {"booking_id": booking_id, "amount": record.amount},
        )
    ])
