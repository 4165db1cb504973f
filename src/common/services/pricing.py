from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from common.utils.constants import MAX_STAY
from common.utils.custom_exceptions import CapacityError, InvalidRangeError
from common.utils.datetime_normaliser import to_calendar_date


def count_nights(check_in: date | datetime, check_out: date | datetime) -> int:
    return (to_calendar_date(check_out) - to_calendar_date(check_in)).days


def compute_price(
    nightly_rate: Decimal | int | float,
    check_in: date | datetime,
    check_out: date | datetime,
    guests: int,
    max_guests: Optional[int] = None,
) -> Decimal:
    """Total for a stay: nights * nightly rate * guests.

    Both ends are reduced to calendar dates first, so a late check-in or an
    early check-out never produces a fractional night.
    """
    nights = count_nights(check_in, check_out)
    if nights < 1:
        raise InvalidRangeError("Check-out must be at least one night after check-in")
    if nights > MAX_STAY:
        raise InvalidRangeError(f"Maximum stay is {MAX_STAY} nights")

    if guests < 1:
        raise CapacityError("At least one guest is required")
    if max_guests is not None and guests > max_guests:
        raise CapacityError(f"This place allows at most {max_guests} guests")

    return Decimal(nights) * Decimal(str(nightly_rate)) * guests
