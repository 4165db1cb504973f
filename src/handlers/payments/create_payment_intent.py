import logging
import os
from boto3 import resource

from common.repository.booking_repo import BookingRepository
from common.repository.payment_repo import PaymentRepository
from common.services.payment_service import PaymentService
from common.schemas.payments import PaymentIntentRequest
from common.utils.auth_context import get_auth_context
from common.utils.constants import DEFAULT_CURRENCY, DEFAULT_REGION
from common.utils.custom_response import format_validation_error, send_custom_response
from common.utils.custom_exceptions import BookingError
from pydantic import ValidationError
import stripe

logger = logging.getLogger(__name__)

TABLE_NAME = os.environ.get("TABLE_NAME")
REGION = os.environ.get("AWS_REGION", DEFAULT_REGION)
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


def create_payment_intent(event, context):
    try:
        ctx = get_auth_context(event)
    except BookingError as err:
        return send_custom_response(err.status_code, str(err))

    if not event.get("body"):
        return send_custom_response(400, "Booking ID is required")

    try:
        request_body = PaymentIntentRequest.model_validate_json(event["body"])
    except ValidationError as e:
        return send_custom_response(400, format_validation_error(e))

    try:
        client_secret = payment_service.create_payment_intent(ctx, request_body.booking_id)
        return send_custom_response(200, "Payment intent created", client_secret)

    except BookingError as err:
        return send_custom_response(err.status_code, str(err))

    except stripe.StripeError as err:
        logger.error(f"Stripe rejected payment intent for {request_body.booking_id}: {err}")
        return send_custom_response(502, "Payment provider error")

    except Exception:
        logger.exception("Unhandled error while creating payment intent")
        return send_custom_response(500, "Internal server error")
