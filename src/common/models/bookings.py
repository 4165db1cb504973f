from enum import Enum
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


@dataclass
class Booking:
    booking_id: str
    user_id: str
    place_id: str
    check_in: date
    check_out: date
    guests: int
    total_price: Decimal
    contact_name: str
    contact_email: str
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.UNPAID

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def to_dict(self) -> dict:
        return {
            "booking_id": self.booking_id,
            "user_id": self.user_id,
            "place_id": self.place_id,
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat(),
            "nights": self.nights,
            "guests": self.guests,
            "total_price": str(self.total_price),
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "contact_name": self.contact_name,
            "contact_email": self.contact_email,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
        }


@dataclass
class BookingConfirmation:
    booking_id: str
    place_id: str
    account_name: str
    account_email: str
    contact_name: str
    contact_email: str
    check_in: date
    check_out: date
    nights: int
    guests: int
    total_price: Decimal
