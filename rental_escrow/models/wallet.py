import uuid
from sqlalchemy import Column, String, DateTime, BigInteger, Uuid
from sqlalchemy.sql import func

from rental_escrow.db.base import Base

class Wallet(Base):
    __tablename__ = "wallets"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(String(255), unique=True, nullable=False, index=True)

    currency = Column(String(3), nullable=False, default="NGN")
    # cached sum of ledger_entries.amount for this owner
    balance = Column(BigInteger, nullable=False, default=0)
    # number of the newest ledger entry; orders entries written in one transaction
    last_entry_seq = Column(BigInteger, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
