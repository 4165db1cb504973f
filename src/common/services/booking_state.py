"""Lifecycle rules for bookings.

Status and payment status move independently; the guards below are the only
place the coupling between the two is decided.
"""
from datetime import date
from decimal import Decimal
from typing import Dict, Set

from common.models.bookings import Booking, BookingStatus, PaymentStatus
from common.utils.auth_context import AuthContext
from common.utils.custom_exceptions import (
    AlreadyCancelledError,
    AuthorizationError,
    TerminalStateError,
    TooLateToCancelError,
)

STATUS_TRANSITIONS: Dict[BookingStatus, Set[BookingStatus]] = {
    BookingStatus.PENDING: {
        BookingStatus.CONFIRMED,
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
    },
    BookingStatus.CONFIRMED: {
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
    },
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, Set[PaymentStatus]] = {
    PaymentStatus.UNPAID: {PaymentStatus.PAID},
    # paid -> unpaid happens when an edit changes the total
    PaymentStatus.PAID: {PaymentStatus.REFUNDED, PaymentStatus.UNPAID},
    PaymentStatus.REFUNDED: set(),
}

EDITABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def is_terminal(status: BookingStatus) -> bool:
    return not STATUS_TRANSITIONS[status]


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in STATUS_TRANSITIONS[current]


def can_transition_payment(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in PAYMENT_TRANSITIONS[current]


def ensure_owner(booking: Booking, ctx: AuthContext, action: str):
    if booking.user_id != ctx.user_id:
        raise AuthorizationError(f"You are not authorized to {action} this booking")


def ensure_can_view(booking: Booking, ctx: AuthContext):
    if not ctx.is_admin and booking.user_id != ctx.user_id:
        raise AuthorizationError("You are not authorized to view this booking")


def ensure_can_edit(booking: Booking, ctx: AuthContext):
    ensure_owner(booking, ctx, "edit")
    if booking.status not in EDITABLE_STATUSES:
        raise TerminalStateError(f"Cannot edit a {booking.status.value} booking")


def ensure_can_cancel(booking: Booking, ctx: AuthContext, today: date):
    ensure_owner(booking, ctx, "cancel")
    if booking.status == BookingStatus.CANCELLED:
        raise AlreadyCancelledError("Booking is already cancelled")
    if not can_transition(booking.status, BookingStatus.CANCELLED):
        raise TerminalStateError(f"Cannot cancel a {booking.status.value} booking")
    if today >= booking.check_in:
        raise TooLateToCancelError("Cannot cancel a booking that has already started")


def ensure_can_complete(booking: Booking):
    if not can_transition(booking.status, BookingStatus.COMPLETED):
        raise TerminalStateError(f"Cannot complete a {booking.status.value} booking")


def status_after_payment(status: BookingStatus) -> BookingStatus:
    if can_transition(status, BookingStatus.CONFIRMED):
        return BookingStatus.CONFIRMED
    return status


def payment_status_after_edit(booking: Booking, new_price: Decimal) -> PaymentStatus:
    """A paid booking whose total moves is no longer covered by what was collected."""
    if booking.payment_status == PaymentStatus.PAID and new_price != booking.total_price:
        return PaymentStatus.UNPAID
    return booking.payment_status
