from botocore.exceptions import ClientError
import logging
from typing import Optional
from common.models.places import Place
from decimal import Decimal

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from types_boto3_dynamodb.service_resource import Table
else:
    Table = object


logger = logging.getLogger(__name__)


class PlaceRepository:
    def __init__(self, table: Table):
        self.table = table

    def get_place(self, place_id: str) -> Optional[Place]:
        try:
            response = self.table.get_item(
                Key={"pk": f"PLACE#{place_id}", "sk": "DETAILS"}
            )
        except ClientError as err:
            logger.error(f"Error retrieving place {place_id}: {err}")
            raise

        item = response.get("Item")
        if not item:
            return None
        return Place(
            place_id=place_id,
            nightly_rate=Decimal(str(item["price"])),
            max_guests=int(item["max_guests"]),
            owner_id=item["owner_id"],
        )
