from reservation_engine.lifecycle.booking_number import (
    BookingNumberGenerator,
    DailySequence,
    derive_prefix,
    generate_booking_number,
)
from reservation_engine.lifecycle.predicates import (
    can_be_cancelled,
    can_customer_cancel,
    can_provider_cancel,
    is_active,
    minutes_until_service,
    scheduled_start,
)
from reservation_engine.lifecycle.refund import RefundPolicyEngine
from reservation_engine.lifecycle.state_machine import BookingLifecycle, Transition

__all__ = [
    "BookingLifecycle",
    "BookingNumberGenerator",
    "DailySequence",
    "RefundPolicyEngine",
    "Transition",
    "can_be_cancelled",
    "can_customer_cancel",
    "can_provider_cancel",
    "derive_prefix",
    "generate_booking_number",
    "is_active",
    "minutes_until_service",
    "scheduled_start",
]
