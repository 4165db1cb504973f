from botocore.exceptions import ClientError
import logging
from typing import Dict, List, Optional, Tuple
from boto3.dynamodb.conditions import Attr, Key
from common.models.bookings import Booking, BookingStatus, PaymentStatus
from common.utils.constants import USER_INDEX_NAME
from common.utils.custom_exceptions import ConflictError
from common.utils.datetime_normaliser import from_iso_string
from decimal import Decimal
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from types_boto3_dynamodb.service_resource import Table
    from types_boto3_dynamodb import DynamoDBClient
else:
    Table = object
    DynamoDBClient = object


logger = logging.getLogger(__name__)

TRANSACTION_CANCELED = "TransactionCanceledException"
CONDITION_FAILED = "ConditionalCheckFailed"


def cancellation_codes(err: ClientError) -> List[str]:
    return [
        reason.get("Code", "None")
        for reason in err.response.get("CancellationReasons", [])
    ]


def is_transaction_conflict(err: ClientError) -> bool:
    return err.response.get("Error", {}).get("Code") == TRANSACTION_CANCELED and (
        CONDITION_FAILED in cancellation_codes(err)
    )


class BookingRepository:
    """Bookings plus the per-night locks that keep a place from being double-booked.

    Every night a live booking occupies is a ``PLACE#<id> / NIGHT#<date>`` item.
    Locks are written with ``attribute_not_exists`` in the same transaction as
    the booking itself, so two overlapping reservations can never both commit.
    """

    def __init__(self, table: Table, client: DynamoDBClient = None):
        self.table = table
        self.client = client if client else table.meta.client

    @staticmethod
    def _iso(dt: datetime) -> str:
        if dt.tzinfo is None:
            raise ValueError("Datetime must be timezone-aware")
        return dt.astimezone(timezone.utc).isoformat()

    @staticmethod
    def _nights(check_in: date, check_out: date) -> List[str]:
        return [
            (check_in + timedelta(days=offset)).isoformat()
            for offset in range((check_out - check_in).days)
        ]

    @staticmethod
    def _booking_key(booking_id: str) -> dict:
        return {"pk": f"BOOKING#{booking_id}", "sk": "DETAILS"}

    def _lock_put(self, place_id: str, night: str, booking_id: str) -> dict:
        return {
            "Put": {
                "TableName": self.table.name,
                "Item": {
                    "pk": f"PLACE#{place_id}",
                    "sk": f"NIGHT#{night}",
                    "booking_id": booking_id,
                },
                "ConditionExpression": "attribute_not_exists(pk)",
            }
        }

    def _lock_delete(self, place_id: str, night: str, booking_id: str) -> dict:
        return {
            "Delete": {
                "TableName": self.table.name,
                "Key": {"pk": f"PLACE#{place_id}", "sk": f"NIGHT#{night}"},
                "ConditionExpression": "booking_id = :booking_id",
                "ExpressionAttributeValues": {":booking_id": booking_id},
            }
        }

    def _to_item(self, booking: Booking) -> dict:
        item = {
            **self._booking_key(booking.booking_id),
            "user_id": booking.user_id,
            "place_id": booking.place_id,
            "check_in": booking.check_in.isoformat(),
            "check_out": booking.check_out.isoformat(),
            "guests": booking.guests,
            "total_price": Decimal(str(booking.total_price)),
            "booking_status": booking.status.value,
            "payment_status": booking.payment_status.value,
            "contact_name": booking.contact_name,
            "contact_email": booking.contact_email,
            "created_at": self._iso(booking.created_at),
        }
        if booking.updated_at:
            item["updated_at"] = self._iso(booking.updated_at)
        return item

    @staticmethod
    def _to_domain(item: dict) -> Booking:
        updated_at = item.get("updated_at")
        cancelled_at = item.get("cancelled_at")
        return Booking(
            booking_id=item["pk"].removeprefix("BOOKING#"),
            user_id=item["user_id"],
            place_id=item["place_id"],
            check_in=date.fromisoformat(item["check_in"]),
            check_out=date.fromisoformat(item["check_out"]),
            guests=int(item["guests"]),
            total_price=Decimal(str(item["total_price"])),
            status=BookingStatus(item["booking_status"]),
            payment_status=PaymentStatus(item["payment_status"]),
            contact_name=item["contact_name"],
            contact_email=item["contact_email"],
            created_at=from_iso_string(item["created_at"]),
            updated_at=from_iso_string(updated_at) if updated_at else None,
            cancelled_at=from_iso_string(cancelled_at) if cancelled_at else None,
        )

    def add_booking(self, booking: Booking):
        transact_items = [
            {
                "Put": {
                    "TableName": self.table.name,
                    "Item": self._to_item(booking),
                    "ConditionExpression": "attribute_not_exists(pk)",
                }
            }
        ]
        transact_items.extend(
            self._lock_put(booking.place_id, night, booking.booking_id)
            for night in self._nights(booking.check_in, booking.check_out)
        )

        try:
            self.client.transact_write_items(TransactItems=transact_items)
        except ClientError as err:
            if is_transaction_conflict(err):
                logger.info(
                    f"Booking {booking.booking_id} rejected, place {booking.place_id} "
                    f"taken between {booking.check_in} and {booking.check_out}"
                )
                raise ConflictError(
                    "This place is already booked for the selected dates"
                ) from err
            logger.error(f"Error creating booking {booking.booking_id}: {err}")
            raise

    def is_available(
        self,
        place_id: str,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        nights = self._nights(check_in, check_out)
        if not nights:
            return True

        query_kwargs = {
            "KeyConditionExpression": (
                Key("pk").eq(f"PLACE#{place_id}")
                & Key("sk").between(f"NIGHT#{nights[0]}", f"NIGHT#{nights[-1]}")
            )
        }
        try:
            resp = self.table.query(**query_kwargs)
            while True:
                for item in resp.get("Items", []):
                    if item.get("booking_id") != exclude_booking_id:
                        return False
                if "LastEvaluatedKey" not in resp:
                    return True
                resp = self.table.query(
                    **query_kwargs, ExclusiveStartKey=resp["LastEvaluatedKey"]
                )
        except ClientError as err:
            logger.error(
                f"Error checking availability of place {place_id} between "
                f"{check_in} and {check_out}: {err}"
            )
            raise

    def get_booking_by_id(self, booking_id: str) -> Optional[Booking]:
        try:
            response = self.table.get_item(Key=self._booking_key(booking_id))
        except ClientError as err:
            logger.error(f"Error retrieving booking {booking_id}: {err}")
            raise

        item = response.get("Item")
        if not item:
            return None
        return self._to_domain(item)

    def get_user_bookings(self, user_id: str) -> List[Booking]:
        query_kwargs = {
            "IndexName": USER_INDEX_NAME,
            "KeyConditionExpression": Key("user_id").eq(user_id),
            "FilterExpression": Attr("sk").eq("DETAILS"),
        }
        try:
            response = self.table.query(**query_kwargs)
            items = response.get("Items", [])
            while "LastEvaluatedKey" in response:
                response = self.table.query(
                    **query_kwargs, ExclusiveStartKey=response["LastEvaluatedKey"]
                )
                items.extend(response.get("Items", []))
        except ClientError as err:
            logger.error(f"Error retrieving user {user_id} bookings: {err}")
            raise

        bookings = [self._to_domain(item) for item in items]
        bookings.sort(key=lambda b: b.created_at, reverse=True)
        return bookings

    def list_bookings(
        self,
        status: Optional[BookingStatus] = None,
        limit: Optional[int] = None,
        start_key: Optional[dict] = None,
    ) -> Tuple[List[Booking], Optional[dict]]:
        """Scan one page of bookings, newest first within the page.

        Returns the page and the key to resume from, which is None once the
        scan is exhausted. Without a limit the whole table is read.
        """
        filter_expression = Attr("pk").begins_with("BOOKING#") & Attr("sk").eq("DETAILS")
        if status is not None:
            filter_expression = filter_expression & Attr("booking_status").eq(status.value)

        items: List[dict] = []
        scan_kwargs = {"FilterExpression": filter_expression}
        if start_key:
            scan_kwargs["ExclusiveStartKey"] = start_key

        try:
            while True:
                # Limit caps items read, so a page never overshoots the request
                if limit is not None:
                    scan_kwargs["Limit"] = limit - len(items)
                response = self.table.scan(**scan_kwargs)
                items.extend(response.get("Items", []))

                last_key = response.get("LastEvaluatedKey")
                if not last_key or (limit is not None and len(items) >= limit):
                    break
                scan_kwargs["ExclusiveStartKey"] = last_key
        except ClientError as err:
            logger.error(f"Error listing bookings: {err}")
            raise

        bookings = [self._to_domain(item) for item in items]
        bookings.sort(key=lambda b: b.created_at, reverse=True)
        return bookings, last_key

    def count_bookings_by_month(self, since: datetime) -> Dict[str, int]:
        """Count bookings created at or after ``since``, keyed by ``YYYY-MM``."""
        filter_expression = (
            Attr("pk").begins_with("BOOKING#")
            & Attr("sk").eq("DETAILS")
            & Attr("created_at").gte(self._iso(since))
        )
        scan_kwargs = {
            "FilterExpression": filter_expression,
            "ProjectionExpression": "created_at",
        }

        counts: Dict[str, int] = {}
        try:
            response = self.table.scan(**scan_kwargs)
            while True:
                for item in response.get("Items", []):
                    month = item["created_at"][:7]
                    counts[month] = counts.get(month, 0) + 1
                if "LastEvaluatedKey" not in response:
                    break
                response = self.table.scan(
                    **scan_kwargs, ExclusiveStartKey=response["LastEvaluatedKey"]
                )
        except ClientError as err:
            logger.error(f"Error counting bookings since {since}: {err}")
            raise

        return counts

    def update_booking(self, updated: Booking, previous: Booking):
        """Persist an edit, moving night locks from the old stay to the new one.

        The booking update is conditioned on the state the edit was computed
        from; a concurrent payment or cancellation makes the whole edit fail.
        """
        old_nights = set(self._nights(previous.check_in, previous.check_out))
        new_nights = set(self._nights(updated.check_in, updated.check_out))

        transact_items = [
            {
                "Update": {
                    "TableName": self.table.name,
                    "Key": self._booking_key(updated.booking_id),
                    "UpdateExpression": (
                        "SET #check_in = :check_in, #check_out = :check_out, "
                        "#guests = :guests, #total_price = :total_price, "
                        "#payment_status = :payment_status, "
                        "#contact_name = :contact_name, #contact_email = :contact_email, "
                        "#updated_at = :updated_at"
                    ),
                    "ConditionExpression": (
                        "#booking_status = :prev_status "
                        "AND #payment_status = :prev_payment_status "
                        "AND #check_in = :prev_check_in AND #check_out = :prev_check_out"
                    ),
                    "ExpressionAttributeNames": {
                        "#check_in": "check_in",
                        "#check_out": "check_out",
                        "#guests": "guests",
                        "#total_price": "total_price",
                        "#payment_status": "payment_status",
                        "#booking_status": "booking_status",
                        "#contact_name": "contact_name",
                        "#contact_email": "contact_email",
                        "#updated_at": "updated_at",
                    },
                    "ExpressionAttributeValues": {
                        ":check_in": updated.check_in.isoformat(),
                        ":check_out": updated.check_out.isoformat(),
                        ":guests": updated.guests,
                        ":total_price": Decimal(str(updated.total_price)),
                        ":payment_status": updated.payment_status.value,
                        ":contact_name": updated.contact_name,
                        ":contact_email": updated.contact_email,
                        ":updated_at": self._iso(updated.updated_at),
                        ":prev_status": previous.status.value,
                        ":prev_payment_status": previous.payment_status.value,
                        ":prev_check_in": previous.check_in.isoformat(),
                        ":prev_check_out": previous.check_out.isoformat(),
                    },
                }
            }
        ]
        transact_items.extend(
            self._lock_put(updated.place_id, night, updated.booking_id)
            for night in sorted(new_nights - old_nights)
        )
        transact_items.extend(
            self._lock_delete(previous.place_id, night, previous.booking_id)
            for night in sorted(old_nights - new_nights)
        )

        try:
            self.client.transact_write_items(TransactItems=transact_items)
        except ClientError as err:
            if is_transaction_conflict(err):
                codes = cancellation_codes(err)
                if codes and codes[0] == CONDITION_FAILED:
                    raise ConflictError(
                        "Booking was changed by another request, please retry"
                    ) from err
                raise ConflictError(
                    "This place is already booked for the selected dates"
                ) from err
            logger.error(f"Error updating booking {updated.booking_id}: {err}")
            raise

    def cancel_booking(self, booking: Booking, cancelled_at: datetime):
        transact_items = [
            {
                "Update": {
                    "TableName": self.table.name,
                    "Key": self._booking_key(booking.booking_id),
                    "UpdateExpression": (
                        "SET #booking_status = :cancelled, "
                        "#cancelled_at = :cancelled_at, #updated_at = :cancelled_at"
                    ),
                    "ConditionExpression": "#booking_status = :prev_status",
                    "ExpressionAttributeNames": {
                        "#booking_status": "booking_status",
                        "#cancelled_at": "cancelled_at",
                        "#updated_at": "updated_at",
                    },
                    "ExpressionAttributeValues": {
                        ":cancelled": BookingStatus.CANCELLED.value,
                        ":cancelled_at": self._iso(cancelled_at),
                        ":prev_status": booking.status.value,
                    },
                }
            }
        ]
        transact_items.extend(
            self._lock_delete(booking.place_id, night, booking.booking_id)
            for night in self._nights(booking.check_in, booking.check_out)
        )

        try:
            self.client.transact_write_items(TransactItems=transact_items)
        except ClientError as err:
            if is_transaction_conflict(err):
                raise ConflictError(
                    "Booking was changed by another request, please retry"
                ) from err
            logger.error(f"Error cancelling booking {booking.booking_id}: {err}")
            raise

    def update_booking_status(
        self, booking: Booking, status: BookingStatus, updated_at: datetime
    ):
        try:
            self.table.update_item(
                Key=self._booking_key(booking.booking_id),
                UpdateExpression="SET #booking_status = :new_value, #updated_at = :updated_at",
                ConditionExpression="#booking_status = :prev_status",
                ExpressionAttributeNames={
                    "#booking_status": "booking_status",
                    "#updated_at": "updated_at",
                },
                ExpressionAttributeValues={
                    ":new_value": status.value,
                    ":updated_at": self._iso(updated_at),
                    ":prev_status": booking.status.value,
                },
            )
        except ClientError as err:
            if (
                err.response.get("Error", {}).get("Code")
                == "ConditionalCheckFailedException"
            ):
                raise ConflictError(
                    "Booking was changed by another request, please retry"
                ) from err
            logger.error(f"Error updating booking {booking.booking_id} status: {err}")
            raise
