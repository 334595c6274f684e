from datetime import date

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

class BookingCreate(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    guest_account: EmailStr
    host_account: EmailStr
    apartment_title: str | None = None
    check_in_date: date
    check_out_date: date | None = None
    number_of_guests: int = Field(default=1, ge=1)
    total_amount: int = Field(gt=0, description="Minor units (kobo)")

    @model_validator(mode="after")
    def check_dates(self):
        if self.check_out_date is not None and self.check_out_date < self.check_in_date:
            raise ValueError("Check-out date must not be before check-in date")
        if self.guest_account.lower() == self.host_account.lower():
            raise ValueError("Guest and host must be different accounts")
        return self


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    guest_account: str
    host_account: str
    apartment_title: str | None
    check_in_date: date
    check_out_date: date | None
    number_of_guests: int
    total_amount: int
    status: str
