from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from rental_escrow.core.errors import RecordNotFound
from rental_escrow.db.session import get_db
from rental_escrow.models.booking import Booking, BookingStatus
from rental_escrow.schemas.booking import BookingCreate, BookingOut

router = APIRouter(prefix="/bookings")

# Define a reusable type
db_dependency = Annotated[Session, Depends(get_db)]


@router.post("", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
def create_booking(payload: BookingCreate, db: db_dependency):
    try:
        with db.begin():
            booking = Booking(
                id=payload.id,
                guest_account=payload.guest_account.lower(),
                host_account=payload.host_account.lower(),
                apartment_title=payload.apartment_title,
                check_in_date=payload.check_in_date,
                check_out_date=payload.check_out_date,
                number_of_guests=payload.number_of_guests,
                total_amount=payload.total_amount,
                status=BookingStatus.PENDING_PAYMENT,
            )
            db.add(booking)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Duplicate booking id")
    return booking


@router.get("/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: str, db: db_dependency):
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise RecordNotFound("Booking", booking_id)
    return booking
