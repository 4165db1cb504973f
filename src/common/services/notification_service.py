import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List

import boto3

from common.models.bookings import BookingConfirmation

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, sender: str, region: str, ses_client=None):
        self.sender = sender
        self.ses = ses_client if ses_client else boto3.client("ses", region_name=region)

    def send_booking_confirmation(
        self, recipients: List[str], details: BookingConfirmation
    ):
        recipients = list(dict.fromkeys(r for r in recipients if r))
        if not recipients:
            logger.warning(f"No recipients for booking {details.booking_id} confirmation")
            return

        subject = f"Booking Confirmation {details.booking_id}"

        body = f"""
            Hello {details.account_name or details.contact_name},

            Your booking has been received:

            Booking ID: {details.booking_id}
            Place: {details.place_id}
            Guest name: {details.contact_name} ({details.contact_email})

            Check-in: {details.check_in.isoformat()}
            Check-out: {details.check_out.isoformat()}
            Nights: {details.nights}
            Guests: {details.guests}

            Total Amount: {details.total_price}

            Please complete the payment to confirm your stay.
            """

        msg = MIMEMultipart()
        msg["From"] = self.sender
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain"))

        self.ses.send_raw_email(
            Source=self.sender,
            Destinations=recipients,
            RawMessage={"Data": msg.as_string()},
        )
        logger.info(f"Sent booking confirmation for {details.booking_id}")
