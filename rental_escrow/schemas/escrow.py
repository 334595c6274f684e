from datetime import date, datetime
from pydantic import BaseModel, Field

from rental_escrow.models.escrow import EscrowRecord, EscrowStatus
from rental_escrow.services import countdown
from rental_escrow.services import state_machine as sm


class EscrowCreate(BaseModel):
    booking_id: str = Field(min_length=1, max_length=64)
    payment_reference: str | None = Field(default=None, max_length=255)
    fund_from_wallet: bool = False


class DeclineRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class EscrowGuards(BaseModel):
    can_request_payment: bool
    can_confirm: bool
    can_decline: bool
    can_request_refund: bool


class EscrowOut(BaseModel):
    booking_id: str
    guest_account: str
    host_account: str
    amount: int
    currency: str
    status: EscrowStatus
    effective_status: EscrowStatus
    payment_request_attempts: int
    request_deadline: datetime | None
    request_deadline_ms: int | None
    remaining_seconds: int
    cooldown_remaining_seconds: int
    check_in_date: date
    payment_reference: str | None
    decline_reason: str | None
    host_payout: int | None
    fees: int | None
    version: int
    guards: EscrowGuards

    @classmethod
    def from_record(cls, record: EscrowRecord, now: datetime) -> "EscrowOut":
        return cls(
            booking_id=record.booking_id,
            guest_account=record.guest_account,
            host_account=record.host_account,
            amount=record.amount,
            currency=record.currency,
            status=record.escrow_status,
            effective_status=sm.effective_status(record, now),
            payment_request_attempts=record.payment_request_attempts,
            request_deadline=countdown.from_epoch_ms(record.request_deadline_ms),
            request_deadline_ms=record.request_deadline_ms,
            remaining_seconds=countdown.remaining_seconds(record.request_deadline_ms, now),
            cooldown_remaining_seconds=countdown.remaining_seconds(
                countdown.cooldown_end_ms(record.last_requested_at_ms), now
            ),
            check_in_date=record.check_in_date,
            payment_reference=record.payment_reference,
            decline_reason=record.decline_reason,
            host_payout=record.host_payout,
            fees=record.fees,
            version=record.version,
            guards=EscrowGuards(
                can_request_payment=sm.can_request_payment(record, now),
                can_confirm=sm.can_confirm(record, now),
                can_decline=sm.can_decline(record, now),
                can_request_refund=sm.can_request_refund(record, now),
            ),
        )


class LegacyImportResult(BaseModel):
    created: bool
    escrow: EscrowOut


class LegacyEscrowPayload(BaseModel):
    """Escrow entry as stored by the mobile client."""

    bookingId: str
    userEmail: str
    hostEmail: str
    amount: int | float
    status: str = "pending"
    checkInDate: str
    paymentRequestAttempts: int | None = None
    paymentRequestCountdownEnd: int | str | None = None
    paymentRequestedAt: str | None = None
    paymentReference: str | None = None
    cancellationReason: str | None = None
    currency: str | None = None
