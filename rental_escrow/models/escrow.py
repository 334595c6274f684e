import enum

from sqlalchemy import Column, String, Integer, BigInteger, Date, DateTime, CheckConstraint
from sqlalchemy.sql import func

from rental_escrow.db.base import Base


class EscrowStatus(str, enum.Enum):
    PENDING = "pending"
    PAYMENT_REQUESTED = "payment_requested"
    EXPIRED = "expired"
    CONFIRMED = "confirmed"
    REFUNDED = "refunded"
    DECLINED = "declined"


TERMINAL_STATUSES = frozenset({
    EscrowStatus.CONFIRMED,
    EscrowStatus.REFUNDED,
    EscrowStatus.DECLINED,
})


class EscrowRecord(Base):
    __tablename__ = "escrow_records"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_escrow_amount_positive"),
    )

    booking_id = Column(String(64), primary_key=True)

    guest_account = Column(String(255), nullable=False, index=True)
    host_account = Column(String(255), nullable=False, index=True)

    amount = Column(BigInteger, nullable=False)  # minor units (kobo)
    currency = Column(String(3), nullable=False, default="NGN")

    status = Column(String(32), nullable=False, default=EscrowStatus.PENDING.value, index=True)
    payment_request_attempts = Column(Integer, nullable=False, default=0)

    # absolute epoch milliseconds
    request_deadline_ms = Column(BigInteger, nullable=True)
    last_requested_at_ms = Column(BigInteger, nullable=True)

    check_in_date = Column(Date, nullable=False)

    payment_reference = Column(String, nullable=True)
    decline_reason = Column(String, nullable=True)
    host_payout = Column(BigInteger, nullable=True)
    fees = Column(BigInteger, nullable=True)

    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def escrow_status(self) -> EscrowStatus:
        return EscrowStatus(self.status)
