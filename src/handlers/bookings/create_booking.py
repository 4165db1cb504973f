import json
import logging
import os
from boto3 import resource

from common.repository.booking_repo import BookingRepository
from common.repository.place_repo import PlaceRepository
from common.repository.user_repo import UserRepository
from common.services.booking_service import BookingService
from common.services.notification_service import NotificationService
from common.services.schedule_service import SchedulerService
from common.schemas.bookings import BookingRequest
from common.utils.auth_context import get_auth_context
from common.utils.constants import DEFAULT_REGION
from common.utils.custom_response import (
    format_validation_error,
    path_parameter,
    send_custom_response,
)
from common.utils.custom_exceptions import BookingError
from pydantic import ValidationError

logger = logging.getLogger(__name__)

TABLE_NAME = os.environ.get("TABLE_NAME")
REGION = os.environ.get("AWS_REGION", DEFAULT_REGION)
SENDER_EMAIL = os.environ.get("SENDER_EMAIL")
AUTO_COMPLETE_LAMBDA_ARN = os.environ.get("AUTO_COMPLETE_LAMBDA_ARN")
SCHEDULER_ROLE_ARN = os.environ.get("SCHEDULER_ROLE_ARN")

dynamodb = resource("dynamodb", region_name=REGION)
table = dynamodb.Table(TABLE_NAME)

notification_service = (
    NotificationService(sender=SENDER_EMAIL, region=REGION) if SENDER_EMAIL else None
)
scheduler_service = (
    SchedulerService(AUTO_COMPLETE_LAMBDA_ARN, SCHEDULER_ROLE_ARN, region=REGION)
    if AUTO_COMPLETE_LAMBDA_ARN and SCHEDULER_ROLE_ARN
    else None
)

booking_service = BookingService(
    booking_repo=BookingRepository(table),
    place_repo=PlaceRepository(table),
    user_repo=UserRepository(table),
    notification_service=notification_service,
    schedule_service=scheduler_service,
)


def create_booking(event, context):
    try:
        ctx = get_auth_context(event)
    except BookingError as err:
        return send_custom_response(err.status_code, str(err))

    if not event.get("body"):
        return send_custom_response(400, "Request body is required")

    try:
        body = json.loads(event["body"])
    except json.JSONDecodeError:
        return send_custom_response(400, "Invalid JSON body")
    if not isinstance(body, dict):
        return send_custom_response(400, "Request body must be a JSON object")

    place_id = path_parameter(event, "place_id")
    if place_id:
        body["place_id"] = place_id

    try:
        request_body = BookingRequest.model_validate(body)
    except ValidationError as e:
        return send_custom_response(400, format_validation_error(e))

    try:
        booking = booking_service.create_booking(ctx, request_body)
        return send_custom_response(
            201,
            "Booking successful! Please complete the payment to confirm your stay.",
            booking.to_dict(),
        )

    except BookingError as err:
        return send_custom_response(err.status_code, str(err))

    except Exception:
        logger.exception("Unhandled error while creating booking")
        return send_custom_response(500, "Internal server error")
