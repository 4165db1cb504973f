import logging
import os
from boto3 import resource

from common.models.users import UserRole
from common.repository.booking_repo import BookingRepository
from common.repository.place_repo import PlaceRepository
from common.repository.user_repo import UserRepository
from common.services.booking_service import BookingService
from common.utils.auth_context import AuthContext
from common.utils.constants import DEFAULT_REGION
from common.utils.custom_exceptions import BookingError, TerminalStateError

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

TABLE_NAME = os.environ.get("TABLE_NAME")
REGION = os.environ.get("AWS_REGION", DEFAULT_REGION)

dynamodb = resource("dynamodb", region_name=REGION)
table = dynamodb.Table(TABLE_NAME)

booking_service = BookingService(
    booking_repo=BookingRepository(table),
    place_repo=PlaceRepository(table),
    user_repo=UserRepository(table),
)

SCHEDULER_CONTEXT = AuthContext(user_id="scheduler", role=UserRole.ADMIN)


def auto_complete(event, context):
    booking_id = event.get("booking_id")
    if not booking_id:
        raise KeyError("Missing booking_id in event")

    try:
        booking_service.complete_booking(SCHEDULER_CONTEXT, booking_id)
    except TerminalStateError as err:
        logger.info(f"Auto-complete skipped for {booking_id}: {err}")
    except BookingError as err:
        logger.error(f"Auto-complete failed for {booking_id}: {err}")
        raise
