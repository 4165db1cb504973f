from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from common.models.bookings import BookingStatus
from common.utils.datetime_normaliser import to_calendar_date


class _StayWindow(BaseModel):
    model_config = ConfigDict(extra="forbid")

    check_in: date
    check_out: date

    @field_validator("check_in", "check_out", mode="before")
    @classmethod
    def normalise_to_date(cls, v):
        # time of day is dropped so that pricing and overlap work on whole nights
        if isinstance(v, str):
            try:
                return to_calendar_date(v)
            except ValueError:
                raise ValueError("dates must be ISO formatted, e.g. 2026-01-20")
        return to_calendar_date(v) if isinstance(v, date) else v


class BookingRequest(_StayWindow):
    place_id: str = Field(min_length=1)
    guests: int
    name: str = Field(min_length=1, max_length=120)
    email: EmailStr


class EditBookingRequest(_StayWindow):
    guests: Optional[int] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    email: Optional[EmailStr] = None


class BookingStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: BookingStatus

    @model_validator(mode="after")
    def only_completion(self):
        if self.status != BookingStatus.COMPLETED:
            raise ValueError("only the 'completed' status can be set administratively")
        return self
