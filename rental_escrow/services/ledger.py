"""Wallet ledger: append-only entries with a cached per-owner balance.

Callers own the transaction (``with db.begin():``); nothing here commits.
The cached ``Wallet.balance`` is moved with an atomic UPDATE in the same
transaction as the entry it mirrors, and ``reconcile`` can always rebuild
it from the entries.
"""
import logging

from sqlalchemy import select, update, func
from sqlalchemy.orm import Session

from rental_escrow.core.config import settings
from rental_escrow.core.errors import (
    DuplicateReference,
    EscrowError,
    InsufficientBalance,
    InvalidAmount,
    RecordNotFound,
)
from rental_escrow.models.ledger import LedgerEntry, LedgerKind
from rental_escrow.models.wallet import Wallet

logger = logging.getLogger(__name__)

def normalize_owner(owner_id: str) -> str:
    return owner_id.strip().lower()


def _validate_amount(amount):
    # bool is an int subclass; True is not a kobo amount
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(amount)


def get_wallet(db: Session, owner_id: str) -> Wallet | None:
    result = db.execute(select(Wallet).where(Wallet.owner_id == normalize_owner(owner_id)))
    return result.scalars().first()


def get_or_create_wallet(db: Session, owner_id: str, currency: str | None = None) -> Wallet:
    wallet = get_wallet(db, owner_id)
    if wallet is None:
        wallet = Wallet(
            owner_id=normalize_owner(owner_id),
            currency=currency or settings.DEFAULT_CURRENCY,
            balance=0,
        )
        db.add(wallet)
        db.flush()
        logger.info("Created wallet for %s", wallet.owner_id)
    return wallet


def _find_replay(db: Session, owner_id: str, signed_amount: int, kind: LedgerKind, reference: str):
    existing = db.execute(
        select(LedgerEntry).where(
            LedgerEntry.owner_id == owner_id,
            LedgerEntry.reference == reference,
        )
    ).scalars().first()
    if existing is None:
        return None
    if existing.amount != signed_amount or existing.kind != kind.value:
        raise DuplicateReference(owner_id, reference)
    logger.warning("Ignoring replayed ledger reference %s for %s", reference, owner_id)
    return existing


def credit(
    db: Session,
    owner_id: str,
    amount: int,
    kind: LedgerKind,
    reference: str,
    description: str | None = None,
) -> LedgerEntry:
    """Append a positive entry. Replaying the same reference is a no-op."""
    _validate_amount(amount)
    kind = LedgerKind(kind)
    owner_id = normalize_owner(owner_id)

    existing = _find_replay(db, owner_id, amount, kind, reference)
    if existing is not None:
        return existing

    wallet = get_or_create_wallet(db, owner_id)

    # Atomic balance update (race-safe)
    seq = db.execute(
        update(Wallet)
        .where(Wallet.id == wallet.id)
        .values(balance=Wallet.balance + amount, last_entry_seq=Wallet.last_entry_seq + 1)
        .returning(Wallet.last_entry_seq)
        .execution_options(synchronize_session=False)
    ).scalar_one()
    entry = LedgerEntry(
        owner_id=owner_id,
        seq=seq,
        amount=amount,  # credit
        kind=kind.value,
        reference=reference,
        description=description,
    )
    db.add(entry)
    db.flush()
    db.expire(wallet, ["balance", "last_entry_seq"])
    logger.info("Credited %s %s to %s (%s)", amount, kind.value, owner_id, reference)
    return entry


def debit(
    db: Session,
    owner_id: str,
    amount: int,
    kind: LedgerKind,
    reference: str,
    description: str | None = None,
) -> LedgerEntry:
    """Append a negative entry, refusing to take the balance below zero."""
    _validate_amount(amount)
    kind = LedgerKind(kind)
    owner_id = normalize_owner(owner_id)

    existing = _find_replay(db, owner_id, -amount, kind, reference)
    if existing is not None:
        return existing

    # Atomic conditional update prevents overdraft + prevents race conditions
    row = db.execute(
        update(Wallet)
        .where(
            Wallet.owner_id == owner_id,
            Wallet.balance >= amount,
        )
        .values(balance=Wallet.balance - amount, last_entry_seq=Wallet.last_entry_seq + 1)
        .returning(Wallet.id, Wallet.last_entry_seq)
        .execution_options(synchronize_session=False)
    ).first()

    if row is None:
        # an owner without a wallet has a balance of zero
        wallet = get_wallet(db, owner_id)
        balance = wallet.balance if wallet is not None else 0
        raise InsufficientBalance(owner_id, balance, amount)

    entry = LedgerEntry(
        owner_id=owner_id,
        seq=row.last_entry_seq,
        amount=-amount,  # debit
        kind=kind.value,
        reference=reference,
        description=description,
    )
    db.add(entry)
    db.flush()

    wallet = get_wallet(db, owner_id)
    if wallet is not None:
        db.expire(wallet, ["balance", "last_entry_seq"])
    logger.info("Debited %s %s from %s (%s)", amount, kind.value, owner_id, reference)
    return entry


def transfer(
    db: Session,
    source: str,
    target: str,
    amount: int,
    reference: str,
    description: str | None = None,
) -> tuple[LedgerEntry, LedgerEntry]:
    if normalize_owner(source) == normalize_owner(target):
        raise EscrowError("Cannot transfer to the same wallet")
    out_entry = debit(db, source, amount, LedgerKind.TRANSFER_OUT, reference, description)
    in_entry = credit(db, target, amount, LedgerKind.TRANSFER_IN, reference, description)
    return out_entry, in_entry


def get_balance(db: Session, owner_id: str) -> int:
    """Authoritative balance: the sum of every entry for the owner."""
    total = db.execute(
        select(func.coalesce(func.sum(LedgerEntry.amount), 0))
        .where(LedgerEntry.owner_id == normalize_owner(owner_id))
    ).scalar_one()
    return int(total)


def reconcile(db: Session, owner_id: str) -> tuple[Wallet, int]:
    """Replay the ledger into the cached balance. Returns (wallet, drift)."""
    wallet = get_wallet(db, owner_id)
    if wallet is None:
        raise RecordNotFound("Wallet", normalize_owner(owner_id))

    db.refresh(wallet)
    replayed = get_balance(db, owner_id)
    drift = wallet.balance - replayed
    if drift:
        logger.warning(
            "Wallet %s cached balance %s drifted from ledger %s; repairing",
            wallet.owner_id, wallet.balance, replayed,
        )
        wallet.balance = replayed
        db.flush()
    return wallet, drift


def list_entries(db: Session, owner_id: str, limit: int = 20) -> list[LedgerEntry]:
    stmt = (
        select(LedgerEntry)
        .where(LedgerEntry.owner_id == normalize_owner(owner_id))
        .order_by(LedgerEntry.seq.desc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())
