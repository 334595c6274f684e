from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from rental_escrow.core.errors import DuplicateEscrow, InvalidTransition, RecordNotFound
from rental_escrow.models.escrow import EscrowRecord, EscrowStatus
from rental_escrow.services import countdown


def create(db: Session, record: EscrowRecord) -> EscrowRecord:
    if db.get(EscrowRecord, record.booking_id) is not None:
        raise DuplicateEscrow(record.booking_id)
    db.add(record)
    db.flush()
    return record


def get(db: Session, booking_id: str) -> EscrowRecord:
    record = db.get(EscrowRecord, booking_id)
    if record is None:
        raise RecordNotFound("Escrow", booking_id)
    return record


def get_for_update(db: Session, booking_id: str) -> EscrowRecord:
    # FOR UPDATE is dropped by backends without row locks (SQLite)
    stmt = (
        select(EscrowRecord)
        .where(EscrowRecord.booking_id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    record = db.execute(stmt).scalars().first()
    if record is None:
        raise RecordNotFound("Escrow", booking_id)
    return record


def compare_and_set(
    db: Session,
    record: EscrowRecord,
    expected_status: EscrowStatus,
    attempted: str,
    **values,
) -> EscrowRecord:
    """Apply ``values`` only if nobody changed the record since it was read.

    The update matches on both version and status; losing the race raises
    InvalidTransition with whatever status the winner left behind.
    """
    stmt = (
        update(EscrowRecord)
        .where(
            EscrowRecord.booking_id == record.booking_id,
            EscrowRecord.version == record.version,
            EscrowRecord.status == expected_status.value,
        )
        .values(version=EscrowRecord.version + 1, **values)
        .returning(EscrowRecord.version)
        .execution_options(synchronize_session=False)
    )
    row = db.execute(stmt).first()
    db.expire(record)
    if row is None:
        db.refresh(record)
        raise InvalidTransition(record.booking_id, record.status, attempted, "record was modified concurrently")
    db.refresh(record)
    return record


def find_expired(db: Session, now: datetime) -> list[EscrowRecord]:
    stmt = (
        select(EscrowRecord)
        .where(
            EscrowRecord.status == EscrowStatus.PAYMENT_REQUESTED.value,
            EscrowRecord.request_deadline_ms <= countdown.to_epoch_ms(now),
        )
        .order_by(EscrowRecord.request_deadline_ms.asc())
    )
    return list(db.execute(stmt).scalars().all())
