from reservation_engine.availability.resolver import (
    AlternativeSlots,
    AvailabilityResolver,
    ReasonCode,
    SlotCheckResult,
    find_conflict,
)

__all__ = [
    "AvailabilityResolver",
    "AlternativeSlots",
    "ReasonCode",
    "SlotCheckResult",
    "find_conflict",
]
