import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from rental_escrow.core.errors import RecordNotFound
from rental_escrow.db.session import get_db
from rental_escrow.models.ledger import LedgerKind
from rental_escrow.schemas.wallet import (
    AmountRequest,
    LedgerEntryOut,
    PaymentWebhook,
    ReconcileOut,
    TransferRequest,
    WalletOut,
)
from rental_escrow.services import ledger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wallets")

# Define a reusable type
db_dependency = Annotated[Session, Depends(get_db)]


def _wallet_response(db: Session, owner_id: str, entry) -> dict:
    wallet = ledger.get_wallet(db, owner_id)
    return {
        "reference": entry.reference,
        "owner_id": wallet.owner_id,
        "balance": wallet.balance,
    }


@router.post("/webhooks/payment")
def payment_webhook(payload: PaymentWebhook, db: db_dependency):
    if payload.status.lower() != "successful":
        logger.info("Ignoring %s webhook for %s with status %s", payload.event, payload.tx_ref, payload.status)
        return {"processed": False}

    try:
        with db.begin():
            entry = ledger.credit(
                db,
                payload.customer_email,
                payload.amount,
                LedgerKind.DEPOSIT,
                payload.tx_ref,
                description=f"Wallet top-up ({payload.event})",
            )
            response = _wallet_response(db, payload.customer_email, entry)
    except IntegrityError:
        # a concurrent delivery of the same webhook won the insert
        raise HTTPException(status_code=409, detail="Duplicate transaction reference")
    return {"processed": True, **response}


@router.get("/{owner_id}", response_model=WalletOut)
def get_wallet(owner_id: str, db: db_dependency):
    wallet = ledger.get_wallet(db, owner_id)
    if wallet is None:
        raise RecordNotFound("Wallet", owner_id)
    return wallet


@router.get("/{owner_id}/entries", response_model=list[LedgerEntryOut])
def list_entries(owner_id: str, db: db_dependency, limit: int = Query(default=20, ge=1, le=200)):
    return ledger.list_entries(db, owner_id, limit=limit)


@router.post("/{owner_id}/deposit")
def deposit(owner_id: str, payload: AmountRequest, db: db_dependency):
    try:
        with db.begin():
            entry = ledger.credit(
                db, owner_id, payload.amount, LedgerKind.DEPOSIT, payload.reference, payload.description
            )
            response = _wallet_response(db, owner_id, entry)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Duplicate transaction reference")
    return response


@router.post("/{owner_id}/withdraw")
def withdraw(owner_id: str, payload: AmountRequest, db: db_dependency):
    try:
        with db.begin():
            entry = ledger.debit(
                db, owner_id, payload.amount, LedgerKind.WITHDRAWAL, payload.reference, payload.description
            )
            response = _wallet_response(db, owner_id, entry)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Duplicate transaction reference")
    return response


@router.post("/{owner_id}/transfer")
def transfer(owner_id: str, payload: TransferRequest, db: db_dependency):
    try:
        with db.begin():
            out_entry, _ = ledger.transfer(
                db, owner_id, payload.target, payload.amount, payload.reference, payload.description
            )
            response = _wallet_response(db, owner_id, out_entry)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Duplicate transaction reference")
    return response


@router.post("/{owner_id}/reconcile", response_model=ReconcileOut, status_code=status.HTTP_200_OK)
def reconcile(owner_id: str, db: db_dependency):
    with db.begin():
        wallet, drift = ledger.reconcile(db, owner_id)
    return ReconcileOut(wallet=WalletOut.model_validate(wallet), drift=drift)
