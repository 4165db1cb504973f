import unittest
from unittest.mock import MagicMock
from decimal import Decimal
from botocore.exceptions import ClientError

from common.models.places import Place
from common.repository.place_repo import PlaceRepository


class TestPlaceRepository(unittest.TestCase):

    def setUp(self):
        self.table = MagicMock()
        self.repo = PlaceRepository(self.table)

    def test_get_place(self):
        self.table.get_item.return_value = {
            "Item": {
                "pk": "PLACE#p1",
                "sk": "DETAILS",
                "price": Decimal("120.50"),
                "max_guests": Decimal("4"),
                "owner_id": "host-1",
                "title": "Sea view",
            }
        }

        place = self.repo.get_place("p1")

        self.table.get_item.assert_called_once_with(Key={"pk": "PLACE#p1", "sk": "DETAILS"})
        self.assertEqual(place.place_id, "p1")
        self.assertEqual(place.nightly_rate, Decimal("120.50"))
        self.assertEqual(place.max_guests, 4)
        self.assertEqual(place, Place("p1", Decimal("120.50"), 4, "host-1"))

    def test_get_place_not_found(self):
        self.table.get_item.return_value = {}

        self.assertIsNone(self.repo.get_place("missing"))

    def test_get_place_client_error(self):
        self.table.get_item.side_effect = ClientError(
            error_response={"Error": {"Message": "Get failed"}},
            operation_name="GetItem",
        )

        with self.assertRaises(ClientError):
            self.repo.get_place("p1")


if __name__ == "__main__":
    unittest.main()
