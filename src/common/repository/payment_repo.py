from botocore.exceptions import ClientError
import logging
from typing import Optional, List
from boto3.dynamodb.conditions import Key
from common.models.bookings import Booking, BookingStatus, PaymentStatus
from common.models.payments import Payment, PaymentRecordStatus
from common.repository.booking_repo import is_transaction_conflict
from common.utils.custom_exceptions import ConflictError
from common.utils.datetime_normaliser import from_iso_string
from decimal import Decimal
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from types_boto3_dynamodb.service_resource import Table
    from types_boto3_dynamodb import DynamoDBClient
else:
    Table = object
    DynamoDBClient = object


logger = logging.getLogger(__name__)


class PaymentRepository:
    def __init__(self, table: Table, client: DynamoDBClient = None):
        self.table = table
        self.client = client if client else table.meta.client

    @staticmethod
    def _key(booking_id: str, transaction_id: str) -> dict:
        return {"pk": f"BOOKING#{booking_id}", "sk": f"PAYMENT#{transaction_id}"}

    def _to_item(self, payment: Payment) -> dict:
        item = {
            **self._key(payment.booking_id, payment.transaction_id),
            "user_id": payment.user_id,
            "amount": Decimal(str(payment.amount)),
            "currency": payment.currency,
            "payment_status": payment.status.value,
            "created_at": payment.created_at.astimezone(timezone.utc).isoformat(),
        }
        if payment.method:
            item["method"] = payment.method
        if payment.receipt_url:
            item["receipt_url"] = payment.receipt_url
        if payment.updated_at:
            item["updated_at"] = payment.updated_at.astimezone(timezone.utc).isoformat()
        return item

    @staticmethod
    def _to_domain(item: dict) -> Payment:
        updated_at = item.get("updated_at")
        return Payment(
            booking_id=item["pk"].removeprefix("BOOKING#"),
            transaction_id=item["sk"].removeprefix("PAYMENT#"),
            user_id=item["user_id"],
            amount=Decimal(str(item["amount"])),
            currency=item["currency"],
            status=PaymentRecordStatus(item["payment_status"]),
            method=item.get("method"),
            receipt_url=item.get("receipt_url"),
            created_at=from_iso_string(item["created_at"]),
            updated_at=from_iso_string(updated_at) if updated_at else None,
        )

    def add_payment(self, payment: Payment):
        try:
            self.table.put_item(
                Item=self._to_item(payment),
                ConditionExpression="attribute_not_exists(sk)",
            )
        except ClientError as err:
            logger.error(
                f"Error adding payment {payment.transaction_id} "
                f"for booking {payment.booking_id}: {err}"
            )
            raise

    def get_payment(self, booking_id: str, transaction_id: str) -> Optional[Payment]:
        try:
            response = self.table.get_item(Key=self._key(booking_id, transaction_id))
        except ClientError as err:
            logger.error(f"Error retrieving payment {transaction_id}: {err}")
            raise

        item = response.get("Item")
        if not item:
            return None
        return self._to_domain(item)

    def get_booking_payments(self, booking_id: str) -> List[Payment]:
        query_kwargs = {
            "KeyConditionExpression": Key("pk").eq(f"BOOKING#{booking_id}")
            & Key("sk").begins_with("PAYMENT#")
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
            logger.error(f"Error retrieving payments of booking {booking_id}: {err}")
            raise

        return [self._to_domain(item) for item in items]

    def _payment_put(self, payment: Payment) -> dict:
        # a failed attempt on an intent can still be followed by a successful one
        return {
            "Put": {
                "TableName": self.table.name,
                "Item": self._to_item(payment),
                "ConditionExpression": (
                    "attribute_not_exists(sk) OR #payment_status IN (:pending, :failed)"
                ),
                "ExpressionAttributeNames": {
                    "#payment_status": "payment_status",
                },
                "ExpressionAttributeValues": {
                    ":pending": PaymentRecordStatus.PENDING.value,
                    ":failed": PaymentRecordStatus.FAILED.value,
                },
            }
        }

    def _transact(self, transact_items: list, booking: Booking, payment: Payment):
        try:
            self.client.transact_write_items(TransactItems=transact_items)
        except ClientError as err:
            if is_transaction_conflict(err):
                raise ConflictError(
                    f"Booking {booking.booking_id} changed while recording payment"
                ) from err
            logger.error(
                f"Error recording payment {payment.transaction_id} "
                f"for booking {booking.booking_id}: {err}"
            )
            raise

    def record_successful_payment(
        self, booking: Booking, next_status: BookingStatus, payment: Payment
    ):
        """Mark the booking paid and store the payment in one transaction.

        The booking update only applies while the booking is still unpaid, in
        the status it was read in and at the total the payment was checked
        against. Either both writes land or neither does.
        """
        updated_at = (payment.updated_at or datetime.now(timezone.utc)).astimezone(
            timezone.utc
        ).isoformat()
        self._transact(
            [
                {
                    "Update": {
                        "TableName": self.table.name,
                        "Key": {"pk": f"BOOKING#{booking.booking_id}", "sk": "DETAILS"},
                        "UpdateExpression": (
                            "SET #payment_status = :paid, "
                            "#booking_status = :next_status, #updated_at = :updated_at"
                        ),
                        "ConditionExpression": (
                            "#payment_status = :unpaid AND #booking_status = :prev_status "
                            "AND #total_price = :total_price"
                        ),
                        "ExpressionAttributeNames": {
                            "#payment_status": "payment_status",
                            "#booking_status": "booking_status",
                            "#total_price": "total_price",
                            "#updated_at": "updated_at",
                        },
                        "ExpressionAttributeValues": {
                            ":paid": PaymentStatus.PAID.value,
                            ":unpaid": PaymentStatus.UNPAID.value,
                            ":next_status": next_status.value,
                            ":prev_status": booking.status.value,
                            ":total_price": Decimal(str(booking.total_price)),
                            ":updated_at": updated_at,
                        },
                    }
                },
                self._payment_put(payment),
            ],
            booking,
            payment,
        )

    def record_partial_payment(self, booking: Booking, payment: Payment):
        """Store a payment that does not cover the booking total.

        The booking is left unpaid; the write only lands while the booking is
        unchanged from when the shortfall was computed.
        """
        self._transact(
            [
                {
                    "ConditionCheck": {
                        "TableName": self.table.name,
                        "Key": {"pk": f"BOOKING#{booking.booking_id}", "sk": "DETAILS"},
                        "ConditionExpression": (
                            "#payment_status = :unpaid AND #total_price = :total_price"
                        ),
                        "ExpressionAttributeNames": {
                            "#payment_status": "payment_status",
                            "#total_price": "total_price",
                        },
                        "ExpressionAttributeValues": {
                            ":unpaid": PaymentStatus.UNPAID.value,
                            ":total_price": Decimal(str(booking.total_price)),
                        },
                    }
                },
                self._payment_put(payment),
            ],
            booking,
            payment,
        )

    def mark_payment_failed(self, booking_id: str, transaction_id: str) -> bool:
        try:
            self.table.update_item(
                Key=self._key(booking_id, transaction_id),
                UpdateExpression="SET #payment_status = :failed, #updated_at = :updated_at",
                ConditionExpression="#payment_status = :pending",
                ExpressionAttributeNames={
                    "#payment_status": "payment_status",
                    "#updated_at": "updated_at",
                },
                ExpressionAttributeValues={
                    ":failed": PaymentRecordStatus.FAILED.value,
                    ":pending": PaymentRecordStatus.PENDING.value,
                    ":updated_at": datetime.now(timezone.utc).isoformat(),
                },
            )
        except ClientError as err:
            if (
                err.response.get("Error", {}).get("Code")
                == "ConditionalCheckFailedException"
            ):
                return False
            logger.error(f"Error marking payment {transaction_id} failed: {err}")
            raise
        return True
