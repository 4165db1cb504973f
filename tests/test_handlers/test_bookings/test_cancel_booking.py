import importlib
import json
import os
import unittest
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

from common.models.bookings import Booking, BookingStatus
from common.utils.custom_exceptions import (
    AlreadyCancelledError,
    AuthorizationError,
    NotFoundException,
    TooLateToCancelError,
)


class CancelBookingTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.env = patch.dict(os.environ, {"TABLE_NAME": "test-table"}, clear=False)
        cls.env.start()
        cls.resource = patch("handlers.bookings.cancel_booking.resource")
        mock_res = cls.resource.start()
        mock_res.return_value.Table.return_value = MagicMock()
        import handlers.bookings.cancel_booking as mod
        cls.mod = importlib.reload(mod)

    @classmethod
    def tearDownClass(cls):
        cls.resource.stop()
        cls.env.stop()

    def setUp(self):
        self.p_service = patch.object(self.mod, "booking_service")
        self.mock_service = self.p_service.start()

    def tearDown(self):
        self.p_service.stop()

    def _event(self, booking_id="b1"):
        return {
            "pathParameters": {"booking_id": booking_id} if booking_id else None,
            "requestContext": {"authorizer": {"user_id": "u1", "role": "USER"}},
        }

    def test_success(self):
        self.mock_service.cancel_booking.return_value = Booking(
            booking_id="b1",
            user_id="u1",
            place_id="p1",
            check_in=date(2030, 1, 10),
            check_out=date(2030, 1, 13),
            guests=2,
            total_price=Decimal("600"),
            contact_name="Guest",
            contact_email="guest@example.com",
            status=BookingStatus.CANCELLED,
        )

        resp = self.mod.cancel_booking(self._event(), None)

        self.assertEqual(200, resp["statusCode"])
        self.assertEqual(json.loads(resp["body"])["data"]["status"], "cancelled")

    def test_missing_booking_id_returns_400(self):
        resp = self.mod.cancel_booking(self._event(booking_id=None), None)
        self.assertEqual(400, resp["statusCode"])

    def test_error_mapping(self):
        cases = [
            (AlreadyCancelledError("already"), 400),
            (TooLateToCancelError("late"), 400),
            (AuthorizationError("not yours"), 403),
            (NotFoundException("booking", "b1"), 404),
            (RuntimeError("boom"), 500),
        ]
        for err, status in cases:
            with self.subTest(err=type(err).__name__):
                self.mock_service.cancel_booking.side_effect = err
                resp = self.mod.cancel_booking(self._event(), None)
                self.assertEqual(status, resp["statusCode"])


if __name__ == "__main__":
    unittest.main()
