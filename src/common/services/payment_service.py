import logging
from decimal import Decimal
from typing import List, Optional

import stripe

from common.models.bookings import Booking, PaymentStatus
from common.models.payments import Payment, PaymentRecordStatus
from common.repository.booking_repo import BookingRepository
from common.repository.payment_repo import PaymentRepository
from common.services import booking_state
from common.utils.auth_context import AuthContext
from common.utils.constants import DEFAULT_CURRENCY, RECONCILE_MAX_ATTEMPTS
from common.utils.currency import to_minor_units
from common.utils.custom_exceptions import (
    ConflictError,
    InvalidInput,
    NotFoundException,
    TerminalStateError,
)
from common.utils.datetime_normaliser import utc_now

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


class PaymentService:
    def __init__(
        self,
        booking_repo: BookingRepository,
        payment_repo: PaymentRepository,
        stripe_api_key: str | None = None,
        currency: str = DEFAULT_CURRENCY,
    ):
        self.booking_repo = booking_repo
        self.payment_repo = payment_repo
        self.stripe_api_key = stripe_api_key
        self.currency = currency

    def create_payment_intent(self, ctx: AuthContext, booking_id: str) -> str:
        """Open a Stripe PaymentIntent for what is still owed and return its client secret."""
        booking = self._get_booking(booking_id)
        booking_state.ensure_owner(booking, ctx, "pay for")

        if booking_state.is_terminal(booking.status):
            raise TerminalStateError(f"Cannot pay for a {booking.status.value} booking")
        if booking.payment_status != PaymentStatus.UNPAID:
            raise InvalidInput(f"Booking is already {booking.payment_status.value}")

        amount_due = booking.total_price - self._collected(booking_id)
        if amount_due <= 0:
            raise InvalidInput(
                f"Booking {booking_id} has no outstanding balance, a refund is due instead"
            )

        if not self.stripe_api_key:
            raise RuntimeError("Stripe secret key is not configured.")
        stripe.api_key = self.stripe_api_key

        intent = stripe.PaymentIntent.create(
            amount=to_minor_units(amount_due, self.currency),
            currency=self.currency,
            metadata={
                "booking_id": booking.booking_id,
                "user_id": booking.user_id,
            },
        )

        self.payment_repo.add_payment(
            Payment(
                booking_id=booking.booking_id,
                user_id=booking.user_id,
                transaction_id=intent.id,
                amount=amount_due,
                currency=self.currency,
            )
        )
        logger.info(f"Payment intent {intent.id} for {amount_due} created for booking {booking_id}")
        return intent.client_secret

    def reconcile(
        self,
        event_type: str,
        transaction_id: str,
        booking_id: str,
        paid_amount: Decimal,
        currency: str,
        method: Optional[str] = None,
        receipt_url: Optional[str] = None,
        charge_id: Optional[str] = None,
    ) -> bool:
        """Apply one provider notification. Returns False when it changed nothing.

        Notifications are delivered at least once and in any order, so a
        transaction that was already recorded, or a booking that is no longer
        unpaid, is acknowledged without touching state. A booking only becomes
        paid once its succeeded payments cover the current total.
        """
        if event_type == PAYMENT_SUCCEEDED:
            if not receipt_url and charge_id:
                receipt_url = self._receipt_url(charge_id)
            return self._record_success(
                transaction_id, booking_id, paid_amount, currency, method, receipt_url
            )
        if event_type == PAYMENT_FAILED:
            return self._record_failure(transaction_id, booking_id)

        logger.info(f"Ignoring unhandled payment event type {event_type}")
        return False

    def get_booking_payments(self, ctx: AuthContext, booking_id: str) -> List[Payment]:
        booking = self._get_booking(booking_id)
        booking_state.ensure_can_view(booking, ctx)
        return self.payment_repo.get_booking_payments(booking_id)

    def _record_success(
        self,
        transaction_id: str,
        booking_id: str,
        paid_amount: Decimal,
        currency: str,
        method: Optional[str],
        receipt_url: Optional[str],
    ) -> bool:
        for attempt in range(1, RECONCILE_MAX_ATTEMPTS + 1):
            booking = self._get_booking(booking_id)

            existing = self.payment_repo.get_payment(booking_id, transaction_id)
            if existing and existing.status == PaymentRecordStatus.SUCCEEDED:
                logger.info(f"Payment {transaction_id} already recorded for booking {booking_id}")
                return False

            if not booking_state.can_transition_payment(
                booking.payment_status, PaymentStatus.PAID
            ):
                log = logger.info if booking.payment_status == PaymentStatus.PAID else logger.warning
                log(
                    f"Booking {booking_id} is {booking.payment_status.value}, "
                    f"payment {transaction_id} not applied"
                )
                return False

            now = utc_now()
            payment = Payment(
                booking_id=booking_id,
                user_id=booking.user_id,
                transaction_id=transaction_id,
                amount=Decimal(str(paid_amount)),
                currency=currency or self.currency,
                status=PaymentRecordStatus.SUCCEEDED,
                method=method,
                receipt_url=receipt_url,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            collected = self._collected(booking_id, exclude=transaction_id) + payment.amount

            try:
                if collected >= booking.total_price:
                    if collected > booking.total_price:
                        logger.warning(
                            f"Booking {booking_id} collected {collected}, "
                            f"more than its total {booking.total_price}"
                        )
                    self.payment_repo.record_successful_payment(
                        booking, booking_state.status_after_payment(booking.status), payment
                    )
                else:
                    logger.warning(
                        f"Payment {transaction_id} leaves booking {booking_id} short: "
                        f"collected {collected} of {booking.total_price}, still unpaid"
                    )
                    self.payment_repo.record_partial_payment(booking, payment)
            except ConflictError:
                logger.info(
                    f"Booking {booking_id} changed during reconciliation "
                    f"(attempt {attempt}/{RECONCILE_MAX_ATTEMPTS})"
                )
                continue

            logger.info(f"Booking {booking_id} payment {transaction_id} recorded")
            return True

        raise ConflictError(f"Could not reconcile payment {transaction_id}, retry later")

    def _record_failure(self, transaction_id: str, booking_id: str) -> bool:
        self._get_booking(booking_id)
        if self.payment_repo.mark_payment_failed(booking_id, transaction_id):
            logger.info(f"Payment {transaction_id} for booking {booking_id} failed")
            return True
        logger.info(f"Payment {transaction_id} is not pending, failure ignored")
        return False

    def _collected(self, booking_id: str, exclude: Optional[str] = None) -> Decimal:
        return sum(
            (
                p.amount
                for p in self.payment_repo.get_booking_payments(booking_id)
                if p.status == PaymentRecordStatus.SUCCEEDED and p.transaction_id != exclude
            ),
            Decimal(0),
        )

    def _receipt_url(self, charge_id: str) -> Optional[str]:
        if not self.stripe_api_key:
            return None
        stripe.api_key = self.stripe_api_key
        # the receipt is informational, a lookup failure must not block reconciliation
        try:
            return stripe.Charge.retrieve(charge_id).receipt_url
        except stripe.StripeError as err:
            logger.warning(f"Could not fetch receipt for charge {charge_id}: {err}")
            return None

    def _get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repo.get_booking_by_id(booking_id)
        if booking is None:
            raise NotFoundException(resource="booking", identifier=booking_id)
        return booking
