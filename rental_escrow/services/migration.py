"""One-time import of escrow records kept in the mobile client's storage.

Client records used several spellings for the same status over time; they
are collapsed here to the canonical ``EscrowStatus`` values.
"""
import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy.orm import Session

from rental_escrow.core.config import settings
from rental_escrow.core.errors import InvalidAmount
from rental_escrow.models.escrow import EscrowRecord, EscrowStatus
from rental_escrow.services import countdown, escrow_store, ledger

logger = logging.getLogger(__name__)

LEGACY_STATUS_MAP = {
    "pending": EscrowStatus.PENDING,
    "in_escrow": EscrowStatus.PENDING,
    "requested": EscrowStatus.PAYMENT_REQUESTED,
    "payment_requested": EscrowStatus.PAYMENT_REQUESTED,
    "expired": EscrowStatus.EXPIRED,
    "confirmed": EscrowStatus.CONFIRMED,
    "released": EscrowStatus.CONFIRMED,
    "payment_confirmed": EscrowStatus.CONFIRMED,
    "payment_released": EscrowStatus.CONFIRMED,
    "refunded": EscrowStatus.REFUNDED,
    "declined": EscrowStatus.DECLINED,
    "cancelled": EscrowStatus.DECLINED,
}


def normalize_status(raw: str) -> EscrowStatus:
    key = (raw or "").strip().lower().replace(" ", "_").replace("-", "_")
    try:
        return LEGACY_STATUS_MAP[key]
    except KeyError:
        raise ValueError(f"Unknown escrow status: {raw!r}") from None


def _parse_date(value) -> date:
    if isinstance(value, date):
        return value
    # YYYY-MM-DD, optionally followed by a time part
    return date.fromisoformat(str(value)[:10])


def _parse_epoch_ms(value) -> int | None:
    if value in (None, ""):
        return None
    return int(value)


def import_legacy_escrow(db: Session, payload: dict[str, Any]) -> tuple[EscrowRecord, bool]:
    """Import one client-side escrow entry. Returns (record, created)."""
    booking_id = str(payload["bookingId"])
    existing = db.get(EscrowRecord, booking_id)
    if existing is not None:
        logger.info("Escrow for booking %s already imported, skipping", booking_id)
        return existing, False

    amount = payload.get("amount")
    if isinstance(amount, float) and amount.is_integer():
        amount = int(amount)
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(amount)

    status = normalize_status(payload.get("status", "pending"))
    deadline_ms = _parse_epoch_ms(payload.get("paymentRequestCountdownEnd"))
    if status != EscrowStatus.PAYMENT_REQUESTED:
        deadline_ms = None
    elif deadline_ms is None:
        # A request without a stored countdown can no longer be confirmed
        status = EscrowStatus.EXPIRED

    last_requested_ms = None
    requested_at = payload.get("paymentRequestedAt")
    if requested_at:
        parsed = datetime.fromisoformat(str(requested_at).replace("Z", "+00:00"))
        last_requested_ms = countdown.to_epoch_ms(parsed)

    attempts = int(payload.get("paymentRequestAttempts") or 0)
    if status in (EscrowStatus.PAYMENT_REQUESTED, EscrowStatus.EXPIRED):
        attempts = max(attempts, 1)

    record = EscrowRecord(
        booking_id=booking_id,
        guest_account=ledger.normalize_owner(payload["userEmail"]),
        host_account=ledger.normalize_owner(payload["hostEmail"]),
        amount=amount,
        currency=payload.get("currency") or settings.DEFAULT_CURRENCY,
        status=status.value,
        payment_request_attempts=attempts,
        request_deadline_ms=deadline_ms,
        last_requested_at_ms=last_requested_ms,
        check_in_date=_parse_date(payload["checkInDate"]),
        payment_reference=payload.get("paymentReference"),
        decline_reason=payload.get("cancellationReason"),
        version=1,
    )
    escrow_store.create(db, record)
    logger.info("Imported legacy escrow for booking %s as %s", booking_id, status.value)
    return record, True
