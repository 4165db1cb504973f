import logging
import os
from boto3 import resource

from common.models.bookings import BookingStatus
from common.repository.booking_repo import BookingRepository
from common.repository.place_repo import PlaceRepository
from common.repository.user_repo import UserRepository
from common.services.booking_service import BookingService
from common.utils.auth_context import get_auth_context
from common.utils.constants import DEFAULT_PAGE_SIZE, DEFAULT_REGION
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


def list_all_bookings(event, context):
    try:
        ctx = get_auth_context(event)
    except BookingError as err:
        return send_custom_response(err.status_code, str(err))

    params = event.get("queryStringParameters") or {}

    status = None
    status_raw = params.get("status")
    if status_raw:
        try:
            status = BookingStatus(status_raw.lower())
        except ValueError:
            allowed = ", ".join(s.value for s in BookingStatus)
            return send_custom_response(400, f"Invalid status. Allowed: {allowed}")

    try:
        limit = int(params.get("limit") or DEFAULT_PAGE_SIZE)
    except ValueError:
        return send_custom_response(400, "limit must be an integer")

    try:
        bookings, next_cursor = booking_service.list_all_bookings(
            ctx, status=status, limit=limit, cursor=params.get("cursor")
        )
        result = [b.to_dict() for b in bookings]
        return send_custom_response(
            200,
            "Bookings fetched successfully.",
            {"count": len(result), "bookings": result, "next_cursor": next_cursor},
        )

    except BookingError as err:
        return send_custom_response(err.status_code, str(err))

    except Exception:
        logger.exception("Unhandled error while listing all bookings")
        return send_custom_response(500, "Internal server error")
