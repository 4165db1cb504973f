import json
import unittest

from pydantic import ValidationError

from common.schemas.bookings import BookingRequest
from common.utils.custom_response import format_validation_error, path_parameter, send_custom_response


class TestCustomResponse(unittest.TestCase):
    def test_success_response(self):
        resp = send_custom_response(201, "created", {"booking_id": "b1"})

        self.assertEqual(resp["statusCode"], 201)
        self.assertEqual(resp["headers"]["Content-Type"], "application/json")
        body = json.loads(resp["body"])
        self.assertEqual(
            body,
            {"success": True, "status_code": 201, "message": "created", "data": {"booking_id": "b1"}},
        )

    def test_error_response(self):
        body = json.loads(send_custom_response(409, "taken")["body"])

        self.assertFalse(body["success"])
        self.assertIsNone(body["data"])

    def test_format_validation_error_names_fields(self):
        with self.assertRaises(ValidationError) as cm:
            BookingRequest.model_validate({"place_id": "p1"})

        message = format_validation_error(cm.exception)
        self.assertIn("check_in", message)
        self.assertIn("email", message)

    def test_path_parameter(self):
        self.assertEqual(path_parameter({"pathParameters": {"booking_id": "b1"}}, "booking_id"), "b1")
        self.assertIsNone(path_parameter({"pathParameters": None}, "booking_id"))

if __name__ == "__main__":
    unittest.main()
