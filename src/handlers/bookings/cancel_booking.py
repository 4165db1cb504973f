import logging
import os
from boto3 import resource

from common.repository.booking_repo import BookingRepository
from common.repository.place_repo import PlaceRepository
from common.repository.user_repo import UserRepository
from common.services.booking_service import BookingService
from common.utils.auth_context import get_auth_context
from common.utils.constants import DEFAULT_REGION
from common.utils.custom_response import path_parameter, send_custom_response
from common.utils.custom_exceptions import BookingError

logger = logging.getLogger(__name__)

TABLE_NAME = os.environ.get("TABLE_NAME")
REGION = os.environ.get("AWS_REGION", DEFAULT_REGION)

dynamodb = resource("dynamodb", region_name=REGION)
table = dynamodb.Table(TABLE_NAME)

booking_service = BookingService(
    booking_repo=BookingRepository(table),
    place_repo=PlaceRepository(table),
    user_repo=UserRepository(table),
)


def cancel_booking(event, context):
    try:
        ctx = get_auth_context(event)
    except BookingError as err:
        return send_custom_response(err.status_code, str(err))

    booking_id = path_parameter(event, "booking_id")
    if not booking_id:
        return send_custom_response(400, "booking_id is required")

    try:
        booking = booking_service.cancel_booking(ctx, booking_id)
        return send_custom_response(200, "Booking cancelled successfully.", booking.to_dict())

    except BookingError as err:
        return send_custom_response(err.status_code, str(err))

    except Exception:
        logger.exception(f"Unhandled error while cancelling booking {booking_id}")
        return send_custom_response(500, "Internal server error")
