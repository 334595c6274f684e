import enum
import uuid
from sqlalchemy import Column, String, DateTime, BigInteger, Uuid, UniqueConstraint
from sqlalchemy.sql import func

from rental_escrow.db.base import Base


class LedgerKind(str, enum.Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    PAYMENT = "payment"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"
    __table_args__ = (
        UniqueConstraint("owner_id", "reference", name="uq_ledger_owner_reference"),
        UniqueConstraint("owner_id", "seq", name="uq_ledger_owner_seq"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    owner_id = Column(String(255), nullable=False, index=True)
    seq = Column(BigInteger, nullable=False)  # 1, 2, 3... per owner
    amount = Column(BigInteger, nullable=False)  # +credit / -debit
    kind = Column(String(16), nullable=False)

    # idempotency key, e.g. the gateway tx_ref or escrow-release:<booking>
    reference = Column(String, nullable=False)
    description = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
