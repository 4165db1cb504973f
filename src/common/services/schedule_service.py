import boto3
from datetime import date, datetime, time, timezone
import json
import logging

logger = logging.getLogger(__name__)


class SchedulerService:
    """Schedules the one-shot call that completes a booking at check-out."""

    def __init__(self, lambda_arn: str, role_arn: str, region: str, client=None):
        self.client = client if client else boto3.client("scheduler", region_name=region)
        self.lambda_arn = lambda_arn
        self.role_arn = role_arn

    def schedule_completion(self, booking_id: str, checkout: date | datetime | str):
        schedule_name = f"complete-{booking_id}"

        try:
            schedule_expression = self._to_at_expression(checkout)
        except ValueError as e:
            logger.error(f"Invalid time format: {e}")
            raise e

        schedule_params = {
            "Name": schedule_name,
            "ScheduleExpression": schedule_expression,
            "ScheduleExpressionTimezone": "UTC",
            "FlexibleTimeWindow": {"Mode": "OFF"},
            "Target": {
                "Arn": self.lambda_arn,
                "RoleArn": self.role_arn,
                "Input": json.dumps({"booking_id": booking_id}),
            },
            "ActionAfterCompletion": "DELETE",
        }

        try:
            self.client.create_schedule(**schedule_params)
            logger.info(f"Scheduled completion for {booking_id} at {schedule_expression}")
            return True

        except self.client.exceptions.ConflictException:
            logger.info(f"Schedule {schedule_name} exists. Updating target time.")
            self.client.update_schedule(**schedule_params)
            return True

    def _to_at_expression(self, value: date | datetime | str) -> str:
        if isinstance(value, str):
            value = datetime.fromisoformat(value) if "T" in value else date.fromisoformat(value)

        if isinstance(value, datetime):
            if value.tzinfo is None:
                raise ValueError("checkout time must be timezone-aware")
            utc_dt = value.astimezone(timezone.utc)
        else:
            utc_dt = datetime.combine(value, time.min, tzinfo=timezone.utc)

        return f"at({utc_dt.strftime('%Y-%m-%dT%H:%M:%S')})"
