import logging
from dataclasses import replace
from datetime import date, datetime, time, timezone
from typing import List, Optional, Tuple
from uuid import uuid4

from common.models.bookings import Booking, BookingConfirmation, BookingStatus
from common.models.places import Place
from common.models.users import User
from common.repository.booking_repo import BookingRepository
from common.repository.place_repo import PlaceRepository
from common.repository.user_repo import UserRepository
from common.schemas.bookings import BookingRequest, EditBookingRequest
from common.services import booking_state
from common.services.notification_service import NotificationService
from common.services.pricing import compute_price
from common.services.schedule_service import SchedulerService
from common.utils.auth_context import AuthContext
from common.utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, TREND_MONTHS
from common.utils.custom_exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidInput,
    InvalidRangeError,
    NotFoundException,
)
from common.utils.datetime_normaliser import utc_now, utc_today
from common.utils.pagination import decode_cursor, encode_cursor

logger = logging.getLogger(__name__)


class BookingService:
    def __init__(
        self,
        booking_repo: BookingRepository,
        place_repo: PlaceRepository,
        user_repo: UserRepository,
        notification_service: Optional[NotificationService] = None,
        schedule_service: Optional[SchedulerService] = None,
    ):
        self.booking_repo = booking_repo
        self.place_repo = place_repo
        self.user_repo = user_repo
        self.notification_service = notification_service
        self.schedule_service = schedule_service

    def create_booking(self, ctx: AuthContext, req: BookingRequest) -> Booking:
        if ctx.is_admin:
            raise AuthorizationError("Admins cannot book a place")

        user = self.user_repo.get_by_id(ctx.user_id)
        if user is None:
            raise NotFoundException(resource="user", identifier=ctx.user_id)

        place = self._get_place(req.place_id)
        self._ensure_future_check_in(req.check_in)
        total_price = self._price(place, req.check_in, req.check_out, req.guests)

        if not self.booking_repo.is_available(place.place_id, req.check_in, req.check_out):
            raise ConflictError("This place is already booked for the selected dates")

        booking = Booking(
            booking_id=str(uuid4()),
            user_id=ctx.user_id,
            place_id=place.place_id,
            check_in=req.check_in,
            check_out=req.check_out,
            guests=req.guests,
            total_price=total_price,
            contact_name=req.name,
            contact_email=str(req.email),
        )
        self.booking_repo.add_booking(booking)
        logger.info(
            f"Booking {booking.booking_id} created for place {place.place_id} "
            f"by user {ctx.user_id}"
        )

        self._send_confirmation(booking, user)
        self._schedule_completion(booking)
        return booking

    def edit_booking(
        self, ctx: AuthContext, booking_id: str, req: EditBookingRequest
    ) -> Booking:
        booking = self._get_booking(booking_id)
        booking_state.ensure_can_edit(booking, ctx)
        self._ensure_future_check_in(req.check_in)

        place = self._get_place(booking.place_id)
        guests = req.guests if req.guests is not None else booking.guests
        total_price = self._price(place, req.check_in, req.check_out, guests)

        if not self.booking_repo.is_available(
            place.place_id, req.check_in, req.check_out, exclude_booking_id=booking_id
        ):
            raise ConflictError("This place is already booked for the selected dates")

        updated = replace(
            booking,
            check_in=req.check_in,
            check_out=req.check_out,
            guests=guests,
            total_price=total_price,
            payment_status=booking_state.payment_status_after_edit(booking, total_price),
            contact_name=req.name or booking.contact_name,
            contact_email=str(req.email) if req.email else booking.contact_email,
            updated_at=utc_now(),
        )
        self.booking_repo.update_booking(updated, booking)

        if updated.payment_status != booking.payment_status:
            logger.info(
                f"Booking {booking_id} total changed from {booking.total_price} "
                f"to {total_price}, payment status reset to {updated.payment_status.value}"
            )
        if updated.check_out != booking.check_out:
            self._schedule_completion(updated)
        return updated

    def cancel_booking(self, ctx: AuthContext, booking_id: str) -> Booking:
        booking = self._get_booking(booking_id)
        booking_state.ensure_can_cancel(booking, ctx, utc_today())

        now = utc_now()
        self.booking_repo.cancel_booking(booking, cancelled_at=now)
        logger.info(f"Booking {booking_id} cancelled by user {ctx.user_id}")
        return replace(
            booking, status=BookingStatus.CANCELLED, cancelled_at=now, updated_at=now
        )

    def complete_booking(self, ctx: AuthContext, booking_id: str) -> Booking:
        if not ctx.is_admin:
            raise AuthorizationError("Only admins can complete a booking")

        booking = self._get_booking(booking_id)
        booking_state.ensure_can_complete(booking)

        now = utc_now()
        self.booking_repo.update_booking_status(
            booking, BookingStatus.COMPLETED, updated_at=now
        )
        logger.info(f"Booking {booking_id} completed by {ctx.user_id}")
        return replace(booking, status=BookingStatus.COMPLETED, updated_at=now)

    def get_booking(self, ctx: AuthContext, booking_id: str) -> Booking:
        booking = self._get_booking(booking_id)
        booking_state.ensure_can_view(booking, ctx)
        return booking

    def get_user_bookings(self, ctx: AuthContext) -> List[Booking]:
        return self.booking_repo.get_user_bookings(ctx.user_id)

    def list_all_bookings(
        self,
        ctx: AuthContext,
        status: Optional[BookingStatus] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: Optional[str] = None,
    ) -> Tuple[List[Booking], Optional[str]]:
        """One page of all bookings for admins, with the cursor of the next page."""
        if not ctx.is_admin:
            raise AuthorizationError("Only admins can list all bookings")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise InvalidInput(f"limit must be between 1 and {MAX_PAGE_SIZE}")

        bookings, last_key = self.booking_repo.list_bookings(
            status=status, limit=limit, start_key=decode_cursor(cursor)
        )
        return bookings, encode_cursor(last_key)

    def booking_trends(self, ctx: AuthContext, months: int = TREND_MONTHS) -> List[dict]:
        """Bookings created per calendar month, oldest first, ending with the current month."""
        if not ctx.is_admin:
            raise AuthorizationError("Only admins can view booking trends")
        if not 1 <= months <= 24:
            raise InvalidInput("months must be between 1 and 24")

        today = utc_today()
        year, month = today.year, today.month
        starts = []
        for _ in range(months):
            starts.append(date(year, month, 1))
            year, month = (year - 1, 12) if month == 1 else (year, month - 1)
        starts.reverse()

        since = datetime.combine(starts[0], time.min, tzinfo=timezone.utc)
        counts = self.booking_repo.count_bookings_by_month(since)
        return [
            {
                "month": start.strftime("%b"),
                "year": start.year,
                "bookings": counts.get(start.strftime("%Y-%m"), 0),
            }
            for start in starts
        ]

    def _get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repo.get_booking_by_id(booking_id)
        if booking is None:
            raise NotFoundException(resource="booking", identifier=booking_id)
        return booking

    def _get_place(self, place_id: str) -> Place:
        place = self.place_repo.get_place(place_id)
        if place is None:
            raise NotFoundException(resource="place", identifier=place_id)
        return place

    @staticmethod
    def _ensure_future_check_in(check_in: date):
        if check_in <= utc_today():
            raise InvalidRangeError("Check-in must be a future date")

    @staticmethod
    def _price(place: Place, check_in: date, check_out: date, guests: int):
        total_price = compute_price(
            place.nightly_rate, check_in, check_out, guests, max_guests=place.max_guests
        )
        if total_price <= 0:
            raise InvalidInput(f"Place {place.place_id} has no valid nightly rate")
        return total_price

    def _send_confirmation(self, booking: Booking, user: User):
        if not self.notification_service:
            return
        details = BookingConfirmation(
            booking_id=booking.booking_id,
            place_id=booking.place_id,
            account_name=user.name,
            account_email=user.email,
            contact_name=booking.contact_name,
            contact_email=booking.contact_email,
            check_in=booking.check_in,
            check_out=booking.check_out,
            nights=booking.nights,
            guests=booking.guests,
            total_price=booking.total_price,
        )
        # best effort: the booking stands whether or not the email goes out
        try:
            self.notification_service.send_booking_confirmation(
                recipients=[user.email, booking.contact_email], details=details
            )
        except Exception:
            logger.exception(
                f"Failed to send confirmation for booking {booking.booking_id}"
            )

    def _schedule_completion(self, booking: Booking):
        if not self.schedule_service:
            return
        try:
            self.schedule_service.schedule_completion(
                booking_id=booking.booking_id, checkout=booking.check_out
            )
        except Exception:
            logger.exception(
                f"Failed to schedule completion for booking {booking.booking_id}"
            )
