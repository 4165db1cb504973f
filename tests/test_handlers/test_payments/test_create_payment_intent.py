import importlib
import json
import os
import unittest
from unittest.mock import MagicMock, patch

import stripe

from common.utils.custom_exceptions import (
    AuthorizationError,
    InvalidInput,
    NotFoundException,
    TerminalStateError,
)


class CreatePaymentIntentTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.env = patch.dict(
            os.environ,
            {"TABLE_NAME": "test-table", "STRIPE_SECRET_KEY": "sk_test_123"},
            clear=False,
        )
        cls.env.start()
        cls.resource = patch("handlers.payments.create_payment_intent.resource")
        mock_res = cls.resource.start()
        mock_res.return_value.Table.return_value = MagicMock()
        import handlers.payments.create_payment_intent as mod
        cls.mod = importlib.reload(mod)

    @classmethod
    def tearDownClass(cls):
        cls.resource.stop()
        cls.env.stop()

    def setUp(self):
        self.p_service = patch.object(self.mod, "payment_service")
        self.mock_service = self.p_service.start()

    def tearDown(self):
        self.p_service.stop()

    def _event(self, body=None):
        return {
            "body": json.dumps(body) if body is not None else None,
            "requestContext": {"authorizer": {"user_id": "u1", "role": "USER"}},
        }

    def test_success_returns_client_secret(self):
        self.mock_service.create_payment_intent.return_value = "pi_secret"

        resp = self.mod.create_payment_intent(self._event({"booking_id": "b1"}), None)

        self.assertEqual(200, resp["statusCode"])
        self.assertEqual(json.loads(resp["body"])["data"], "pi_secret")
        ctx, booking_id = self.mock_service.create_payment_intent.call_args.args
        self.assertEqual(ctx.user_id, "u1")
        self.assertEqual(booking_id, "b1")

    def test_missing_body_returns_400(self):
        resp = self.mod.create_payment_intent(self._event(), None)
        self.assertEqual(400, resp["statusCode"])

    def test_extra_fields_return_400(self):
        resp = self.mod.create_payment_intent(
            self._event({"booking_id": "b1", "amount": 1}), None
        )
        self.assertEqual(400, resp["statusCode"])
        self.mock_service.create_payment_intent.assert_not_called()

    def test_error_mapping(self):
        cases = [
            (NotFoundException("booking", "b1"), 404),
            (AuthorizationError("not yours"), 403),
            (TerminalStateError("cancelled"), 400),
            (InvalidInput("already paid"), 400),
            (stripe.StripeError("card network down"), 502),
            (RuntimeError("boom"), 500),
        ]
        for err, status in cases:
            with self.subTest(err=type(err).__name__):
                self.mock_service.create_payment_intent.side_effect = err
                resp = self.mod.create_payment_intent(self._event({"booking_id": "b1"}), None)
                self.assertEqual(status, resp["statusCode"])


if __name__ == "__main__":
    unittest.main()
