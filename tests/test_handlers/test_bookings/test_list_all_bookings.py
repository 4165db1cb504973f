import importlib
import json
import os
import unittest
from unittest.mock import MagicMock, patch

from common.models.bookings import BookingStatus
from common.utils.custom_exceptions import AuthorizationError, InvalidInput


class ListAllBookingsTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.env = patch.dict(os.environ, {"TABLE_NAME": "test-table"}, clear=False)
        cls.env.start()
        cls.resource = patch("handlers.bookings.list_all_bookings.resource")
        mock_res = cls.resource.start()
        mock_res.return_value.Table.return_value = MagicMock()
        import handlers.bookings.list_all_bookings as mod
        cls.mod = importlib.reload(mod)

    @classmethod
    def tearDownClass(cls):
        cls.resource.stop()
        cls.env.stop()

    def setUp(self):
        self.p_service = patch.object(self.mod, "booking_service")
        self.mock_service = self.p_service.start()
        self.mock_service.list_all_bookings.return_value = ([], None)

    def tearDown(self):
        self.p_service.stop()

    def _event(self, status=None, role="ADMIN", **params):
        if status:
            params["status"] = status
        return {
            "queryStringParameters": params or None,
            "requestContext": {"authorizer": {"user_id": "admin-1", "role": role}},
        }

    def test_lists_without_filter(self):
        resp = self.mod.list_all_bookings(self._event(), None)

        self.assertEqual(200, resp["statusCode"])
        _, kwargs = self.mock_service.list_all_bookings.call_args
        self.assertIsNone(kwargs["status"])

    def test_status_filter_is_case_insensitive(self):
        self.mod.list_all_bookings(self._event(status="CONFIRMED"), None)

        _, kwargs = self.mock_service.list_all_bookings.call_args
        self.assertEqual(kwargs["status"], BookingStatus.CONFIRMED)

    def test_invalid_status_returns_400(self):
        resp = self.mod.list_all_bookings(self._event(status="upcoming"), None)

        self.assertEqual(400, resp["statusCode"])
        self.assertIn("pending", json.loads(resp["body"])["message"])
        self.mock_service.list_all_bookings.assert_not_called()

    def test_defaults_to_first_page(self):
        resp = self.mod.list_all_bookings(self._event(), None)

        _, kwargs = self.mock_service.list_all_bookings.call_args
        self.assertEqual(kwargs["limit"], 50)
        self.assertIsNone(kwargs["cursor"])
        self.assertIsNone(json.loads(resp["body"])["data"]["next_cursor"])

    def test_limit_and_cursor_are_passed_through(self):
        self.mock_service.list_all_bookings.return_value = ([], "next-page")

        resp = self.mod.list_all_bookings(self._event(limit="10", cursor="abc"), None)

        _, kwargs = self.mock_service.list_all_bookings.call_args
        self.assertEqual(kwargs["limit"], 10)
        self.assertEqual(kwargs["cursor"], "abc")
        self.assertEqual(json.loads(resp["body"])["data"]["next_cursor"], "next-page")

    def test_non_numeric_limit_returns_400(self):
        resp = self.mod.list_all_bookings(self._event(limit="ten"), None)

        self.assertEqual(400, resp["statusCode"])
        self.mock_service.list_all_bookings.assert_not_called()

    def test_bad_cursor_returns_400(self):
        self.mock_service.list_all_bookings.side_effect = InvalidInput("Invalid pagination cursor")

        resp = self.mod.list_all_bookings(self._event(cursor="%%%"), None)

        self.assertEqual(400, resp["statusCode"])

    def test_non_admin_returns_403(self):
        self.mock_service.list_all_bookings.side_effect = AuthorizationError("admins only")
        resp = self.mod.list_all_bookings(self._event(role="USER"), None)
        self.assertEqual(403, resp["statusCode"])


if __name__ == "__main__":
    unittest.main()
