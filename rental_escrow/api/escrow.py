from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from rental_escrow.api.deps import get_clock, get_notifier
from rental_escrow.core.errors import RecordNotFound
from rental_escrow.db.session import get_db
from rental_escrow.models.booking import Booking
from rental_escrow.schemas.escrow import (
    DeclineRequest,
    EscrowCreate,
    EscrowOut,
    LegacyEscrowPayload,
    LegacyImportResult,
)
from rental_escrow.services import escrow, migration, notifications
from rental_escrow.services.escrow import TransitionResult
from rental_escrow.services.notifications import Notifier

router = APIRouter(prefix="/escrow")

# Define a reusable type
db_dependency = Annotated[Session, Depends(get_db)]
clock_dependency = Annotated[datetime, Depends(get_clock)]
notifier_dependency = Annotated[Notifier, Depends(get_notifier)]


def _respond(result: TransitionResult, notifier: Notifier, now: datetime) -> EscrowOut:
    # Runs after commit; notification failures never undo the transition
    notifications.dispatch(notifier, result.notifications)
    return EscrowOut.from_record(result.record, now)


@router.post("", response_model=EscrowOut, status_code=status.HTTP_201_CREATED)
def create_escrow(payload: EscrowCreate, db: db_dependency, now: clock_dependency):
    with db.begin():
        booking = db.get(Booking, payload.booking_id)
        if booking is None:
            raise RecordNotFound("Booking", payload.booking_id)
        record = escrow.create_escrow(
            db,
            booking,
            payment_reference=payload.payment_reference,
            fund_from_wallet=payload.fund_from_wallet,
        )
    return EscrowOut.from_record(record, now)


@router.post("/import", response_model=LegacyImportResult)
def import_legacy(payload: LegacyEscrowPayload, db: db_dependency, now: clock_dependency):
    try:
        with db.begin():
            record, created = migration.import_legacy_escrow(db, payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return LegacyImportResult(created=created, escrow=EscrowOut.from_record(record, now))


@router.get("/{booking_id}", response_model=EscrowOut)
def get_escrow(booking_id: str, db: db_dependency, now: clock_dependency, notifier: notifier_dependency):
    # Reading an overdue request persists its expiry
    with db.begin():
        result = escrow.expire_request(db, booking_id, now)
    return _respond(result, notifier, now)


@router.post("/{booking_id}/request-payment", response_model=EscrowOut)
def request_payment(booking_id: str, db: db_dependency, now: clock_dependency, notifier: notifier_dependency):
    with db.begin():
        result = escrow.request_payment(db, booking_id, now)
    return _respond(result, notifier, now)


@router.post("/{booking_id}/confirm", response_model=EscrowOut)
def confirm_payment(booking_id: str, db: db_dependency, now: clock_dependency, notifier: notifier_dependency):
    with db.begin():
        result = escrow.confirm_payment(db, booking_id, now)
    return _respond(result, notifier, now)


@router.post("/{booking_id}/decline", response_model=EscrowOut)
def decline_payment(
    booking_id: str,
    db: db_dependency,
    now: clock_dependency,
    notifier: notifier_dependency,
    payload: DeclineRequest | None = None,
):
    reason = payload.reason if payload else None
    with db.begin():
        result = escrow.decline_payment(db, booking_id, reason, now)
    return _respond(result, notifier, now)


@router.post("/{booking_id}/expire", response_model=EscrowOut)
def expire_request(booking_id: str, db: db_dependency, now: clock_dependency, notifier: notifier_dependency):
    with db.begin():
        result = escrow.expire_request(db, booking_id, now)
    return _respond(result, notifier, now)


@router.post("/{booking_id}/refund", response_model=EscrowOut)
def request_refund(booking_id: str, db: db_dependency, now: clock_dependency, notifier: notifier_dependency):
    with db.begin():
        result = escrow.request_refund(db, booking_id, now)
    return _respond(result, notifier, now)
