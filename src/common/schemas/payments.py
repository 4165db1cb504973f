from decimal import Decimal
from typing import Optional

import stripe
from pydantic import BaseModel, ConfigDict, Field

from common.utils.currency import from_minor_units


class PaymentIntentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    booking_id: str = Field(min_length=1)


class PaymentEvent(BaseModel):
    """Provider notification after signature verification, in major currency units."""

    event_type: str
    transaction_id: str = Field(min_length=1)
    booking_id: str = Field(min_length=1)
    amount: Decimal = Field(ge=0)
    currency: str
    method: Optional[str] = None
    charge_id: Optional[str] = None
    receipt_url: Optional[str] = None

    @classmethod
    def from_stripe_event(cls, event) -> "PaymentEvent":
        # StripeObject is not a mapping, read it as plain data
        if isinstance(event, stripe.StripeObject):
            event = event.to_dict()

        intent = event["data"]["object"]
        metadata = intent.get("metadata") or {}
        currency = intent.get("currency") or ""
        amount_minor = intent.get("amount_received") or intent.get("amount") or 0

        charge = intent.get("latest_charge")
        if isinstance(charge, dict):
            charge_id, receipt_url = charge.get("id"), charge.get("receipt_url")
        else:
            charge_id, receipt_url = charge, None

        payment_method = intent.get("payment_method")
        if isinstance(payment_method, dict):
            method = payment_method.get("type")
        else:
            method = next(iter(intent.get("payment_method_types") or []), None)

        return cls(
            event_type=event["type"],
            transaction_id=intent["id"],
            booking_id=metadata.get("booking_id", ""),
            amount=from_minor_units(amount_minor, currency),
            currency=currency,
            method=method,
            charge_id=charge_id,
            receipt_url=receipt_url,
        )
