import importlib
import json
import os
import unittest
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

from common.models.bookings import Booking, BookingStatus
from common.utils.custom_exceptions import AuthorizationError, TerminalStateError


class CompleteBookingTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.env = patch.dict(os.environ, {"TABLE_NAME": "test-table"}, clear=False)
        cls.env.start()
        cls.resource = patch("handlers.bookings.complete_booking.resource")
        mock_res = cls.resource.start()
        mock_res.return_value.Table.return_value = MagicMock()
        import handlers.bookings.complete_booking as mod
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

    def _event(self, body=None, role="ADMIN"):
        return {
            "body": json.dumps(body) if body is not None else None,
            "pathParameters": {"booking_id": "b1"},
            "requestContext": {"authorizer": {"user_id": "admin-1", "role": role}},
        }

    def test_success(self):
        self.mock_service.complete_booking.return_value = Booking(
            booking_id="b1",
            user_id="u1",
            place_id="p1",
            check_in=date(2030, 1, 10),
            check_out=date(2030, 1, 13),
            guests=2,
            total_price=Decimal("600"),
            contact_name="Guest",
            contact_email="guest@example.com",
            status=BookingStatus.COMPLETED,
        )

        resp = self.mod.complete_booking(self._event({"status": "completed"}), None)

        self.assertEqual(200, resp["statusCode"])
        self.assertEqual(json.loads(resp["body"])["data"]["status"], "completed")

    def test_other_status_rejected(self):
        resp = self.mod.complete_booking(self._event({"status": "confirmed"}), None)

        self.assertEqual(400, resp["statusCode"])
        self.mock_service.complete_booking.assert_not_called()

    def test_non_admin_returns_403(self):
        self.mock_service.complete_booking.side_effect = AuthorizationError("admins only")
        resp = self.mod.complete_booking(self._event(role="USER"), None)
        self.assertEqual(403, resp["statusCode"])

    def test_cancelled_booking_returns_400(self):
        self.mock_service.complete_booking.side_effect = TerminalStateError("cancelled")
        resp = self.mod.complete_booking(self._event(), None)
        self.assertEqual(400, resp["statusCode"])


if __name__ == "__main__":
    unittest.main()
