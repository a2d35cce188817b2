from reservation_engine.schemas.booking_schema import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Actor,
    Booking,
    BookingStatus,
    CancellationDetails,
    CancellationPolicy,
    CustomerInfo,
    Pricing,
    StatusHistoryEntry,
)
from reservation_engine.schemas.request_schema import CreateBookingRequest, TrackingView
from reservation_engine.schemas.schedule_schema import (
    BlockedPeriod,
    DateException,
    DaySchedule,
    ExceptionKind,
    ProviderSchedule,
    TimeSlot,
    Weekday,
    WeeklySchedule,
)

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "Actor",
    "Booking",
    "BookingStatus",
    "CancellationDetails",
    "CancellationPolicy",
    "CustomerInfo",
    "Pricing",
    "StatusHistoryEntry",
    "CreateBookingRequest",
    "TrackingView",
    "BlockedPeriod",
    "DateException",
    "DaySchedule",
    "ExceptionKind",
    "ProviderSchedule",
    "TimeSlot",
    "Weekday",
    "WeeklySchedule",
]
