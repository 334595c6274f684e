from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class AmountRequest(BaseModel):
    amount: int = Field(gt=0, description="Minor units (kobo)")
    reference: str = Field(min_length=1, max_length=255)
    description: str | None = None


class TransferRequest(AmountRequest):
    target: EmailStr


class PaymentWebhook(BaseModel):
    """Successful top-up reported by the payment gateway."""

    event: str = "charge.completed"
    tx_ref: str = Field(min_length=1, max_length=255)
    customer_email: EmailStr
    amount: int = Field(gt=0)
    status: str = "successful"


class WalletOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    owner_id: str
    currency: str
    balance: int


class LedgerEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    seq: int
    owner_id: str
    amount: int
    kind: str
    reference: str
    description: str | None
    created_at: datetime | None


class ReconcileOut(BaseModel):
    wallet: WalletOut
    drift: int
