import logging
import os
from boto3 import resource

from common.repository.booking_repo import BookingRepository
from common.repository.place_repo import PlaceRepository
from common.repository.user_repo import UserRepository
from common.services.booking_service import BookingService
from common.utils.auth_context import get_auth_context
from common.utils.constants import DEFAULT_REGION, TREND_MONTHS
from common.utils.custom_response import send_custom_response
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


def booking_trends(event, context):
    try:
        ctx = get_auth_context(event)
    except BookingError as err:
        return send_custom_response(err.status_code, str(err))

    params = event.get("queryStringParameters") or {}
    try:
        months = int(params.get("months") or TREND_MONTHS)
    except ValueError:
        return send_custom_response(400, "months must be an integer")

    try:
        trends = booking_service.booking_trends(ctx, months=months)
        return send_custom_response(200, "Booking trends fetched successfully.", trends)

    except BookingError as err:
        return send_custom_response(err.status_code, str(err))

    except Exception:
        logger.exception("Unhandled error while fetching booking trends")
        return send_custom_response(500, "Internal server error")
