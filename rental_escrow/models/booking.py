from sqlalchemy import Column, String, Date, DateTime, BigInteger, Integer
from sqlalchemy.sql import func

from rental_escrow.db.base import Base


class BookingStatus:
    PENDING_PAYMENT = "Pending Payment"
    CONFIRMED = "Confirmed"
    PAYMENT_REQUESTED = "Payment Requested"
    PAYMENT_CONFIRMED = "Payment Confirmed"
    CANCELLED = "Cancelled"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(64), primary_key=True)

    guest_account = Column(String(255), nullable=False, index=True)
    host_account = Column(String(255), nullable=False, index=True)
    apartment_title = Column(String, nullable=True)

    check_in_date = Column(Date, nullable=False)
    check_out_date = Column(Date, nullable=True)
    number_of_guests = Column(Integer, nullable=False, default=1)

    total_amount = Column(BigInteger, nullable=False)  # minor units
    status = Column(String(32), nullable=False, default=BookingStatus.PENDING_PAYMENT)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
