import base64
import logging
import os
from boto3 import resource

from common.repository.booking_repo import BookingRepository
from common.repository.payment_repo import PaymentRepository
from common.services.payment_service import PAYMENT_FAILED, PAYMENT_SUCCEEDED, PaymentService
from common.schemas.payments import PaymentEvent
from common.utils.constants import DEFAULT_CURRENCY, DEFAULT_REGION
from common.utils.custom_response import format_validation_error, send_custom_response
from common.utils.custom_exceptions import BookingError
from pydantic import ValidationError
import stripe

logger = logging.getLogger(__name__)

TABLE_NAME = os.environ.get("TABLE_NAME")
REGION = os.environ.get("AWS_REGION", DEFAULT_REGION)
STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")
STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
PAYMENT_CURRENCY = os.environ.get("PAYMENT_CURRENCY", DEFAULT_CURRENCY)

dynamodb = resource("dynamodb", region_name=REGION)
table = dynamodb.Table(TABLE_NAME)

payment_service = PaymentService(
    booking_repo=BookingRepository(table),
    payment_repo=PaymentRepository(table),
    stripe_api_key=STRIPE_SECRET_KEY,
    currency=PAYMENT_CURRENCY,
)

HANDLED_EVENTS = {PAYMENT_SUCCEEDED, PAYMENT_FAILED}


def _raw_body(event) -> str:
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        return base64.b64decode(body).decode("utf-8")
    return body


def stripe_webhook(event, context):
    if not STRIPE_WEBHOOK_SECRET:
        return send_custom_response(500, "Webhook secret not configured")

    headers = event.get("headers") or {}
    sig_header = headers.get("Stripe-Signature") or headers.get("stripe-signature")

    try:
        stripe_event = stripe.Webhook.construct_event(
            _raw_body(event), sig_header, STRIPE_WEBHOOK_SECRET
        )
    except (ValueError, stripe.SignatureVerificationError) as err:
        logger.warning(f"Webhook signature verification failed: {err}")
        return send_custom_response(400, "Invalid webhook signature")

    if stripe_event["type"] not in HANDLED_EVENTS:
        logger.info(f"Unhandled event type: {stripe_event['type']}")
        return send_custom_response(200, "Event ignored", {"received": True})

    try:
        payment_event = PaymentEvent.from_stripe_event(stripe_event)
    except ValidationError as e:
        # not one of our payment intents, redelivery would not help
        logger.warning(
            f"Event {stripe_event['id']} missing booking data: {format_validation_error(e)}"
        )
        return send_custom_response(200, "Event ignored", {"received": True})
    except KeyError as e:
        logger.warning(f"Event {stripe_event['id']} has no payment intent field {e}")
        return send_custom_response(200, "Event ignored", {"received": True})

    try:
        applied = payment_service.reconcile(
            event_type=payment_event.event_type,
            transaction_id=payment_event.transaction_id,
            booking_id=payment_event.booking_id,
            paid_amount=payment_event.amount,
            currency=payment_event.currency,
            method=payment_event.method,
            receipt_url=payment_event.receipt_url,
            charge_id=payment_event.charge_id,
        )
        message = "Payment reconciled" if applied else "Already handled"
        return send_custom_response(200, message, {"received": True, "applied": applied})

    except BookingError as err:
        logger.error(
            f"Reconciliation of {payment_event.transaction_id} for booking "
            f"{payment_event.booking_id} failed: {err}"
        )
        return send_custom_response(err.status_code, str(err))

    except Exception:
        logger.exception(
            f"Webhook processing failed for {payment_event.transaction_id}"
        )
        return send_custom_response(500, "Webhook processing failed")
