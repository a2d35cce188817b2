"""Pure predicates over a Booking. No I/O, no clock reads: ``now`` is passed in."""

from datetime import datetime, timedelta

from reservation_engine.schemas.booking_schema import (
    ACTIVE_STATUSES,
    Booking,
    BookingStatus,
)
from reservation_engine.utils import combine_local, local_now, resolve_timezone

CUSTOMER_CANCELLABLE = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def scheduled_start(booking: Booking) -> datetime:
    """Aware start instant of the booking in its provider's timezone."""
    return combine_local(
        booking.scheduled_date,
        booking.scheduled_start_minute,
        resolve_timezone(booking.timezone),
    )


def time_until_service(booking: Booking, now: datetime) -> timedelta:
    tz = resolve_timezone(booking.timezone)
    return scheduled_start(booking) - local_now(now, tz)


def minutes_until_service(booking: Booking, now: datetime) -> int:
    return int(time_until_service(booking, now) // timedelta(minutes=1))


def is_active(booking: Booking) -> bool:
    return booking.status in ACTIVE_STATUSES


def can_be_cancelled(booking: Booking, now: datetime) -> bool:
    """Active and still inside the free cancellation window."""
    current = local_now(now, resolve_timezone(booking.timezone))
    return is_active(booking) and current < booking.cancellation_policy.allowed_until


def can_customer_cancel(booking: Booking) -> bool:
    return booking.status in CUSTOMER_CANCELLABLE


def can_provider_cancel(booking: Booking) -> bool:
    return is_active(booking)
