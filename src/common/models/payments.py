from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional


class PaymentRecordStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


@dataclass
class Payment:
    """One provider transaction against a booking.

    The provider transaction id doubles as the payment id, so a booking has
    at most one record per transaction however often the provider notifies.
    """

    booking_id: str
    user_id: str
    transaction_id: str
    amount: Decimal
    currency: str
    status: PaymentRecordStatus = PaymentRecordStatus.PENDING
    method: Optional[str] = None
    receipt_url: Optional[str] = None

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None

    @property
    def payment_id(self) -> str:
        return self.transaction_id

    def to_dict(self) -> dict:
        return {
            "payment_id": self.payment_id,
            "booking_id": self.booking_id,
            "user_id": self.user_id,
            "transaction_id": self.transaction_id,
            "amount": str(self.amount),
            "currency": self.currency,
            "status": self.status.value,
            "method": self.method,
            "receipt_url": self.receipt_url,
            "created_at": self.created_at.isoformat(),
        }
