from reservation_engine.coordination.coordinator import (
    ReservationCoordinator,
    ReservationResult,
    ReservationStatus,
)
from reservation_engine.coordination.locks import KeyedLockTable

__all__ = [
    "KeyedLockTable",
    "ReservationCoordinator",
    "ReservationResult",
    "ReservationStatus",
]
