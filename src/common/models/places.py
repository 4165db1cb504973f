from dataclasses import dataclass
from decimal import Decimal


@dataclass
class Place:
    place_id: str
    nightly_rate: Decimal
    max_guests: int
    owner_id: str
