"""
In-memory booking store.

Stands in for the document database: bookings are indexed by id, by the
unique booking number and by (provider, date) for conflict scans. Every
read returns a deep copy, so callers never share state with the store,
and ``save`` applies optimistic concurrency on ``Booking.version``. The
store also owns the per-day booking-number counter (``sequence``).
"""

import logging
import threading
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional, Protocol

from reservation_engine.errors import (
    DuplicateBookingNumberError,
    NotFoundError,
    StaleBookingError,
)
from reservation_engine.schemas.booking_schema import ACTIVE_STATUSES, Booking, BookingStatus
from reservation_engine.storage.sequence import DailySequence

logger = logging.getLogger(__name__)


class BookingRepository(Protocol):
    """Persistence port used by the lifecycle and the coordinator."""

    sequence: DailySequence

    def add(self, booking: Booking) -> Booking:
        ...

    def get(self, booking_id: str) -> Booking:
        ...

    def get_by_number(self, booking_number: str) -> Booking:
        ...

    def save(self, booking: Booking, expected_version: int) -> Booking:
        ...

    def list_for_provider_day(
        self,
        provider_id: str,
        day: date,
        statuses: Iterable[BookingStatus] = ACTIVE_STATUSES,
    ) -> list[Booking]:
        ...


class InMemoryBookingRepository:
    """Thread-safe dict-backed implementation of ``BookingRepository``."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._by_id: dict[str, Booking] = {}
        self._by_number: dict[str, str] = {}
        self._by_provider_day: dict[tuple[str, date], set[str]] = defaultdict(set)
        self.sequence = DailySequence()

    def add(self, booking: Booking) -> Booking:
        """Insert a new booking at version 1."""
        with self._lock:
            if booking.id in self._by_id:
                raise DuplicateBookingNumberError(
                    f"Booking id '{booking.id}' already exists"
                )
            if booking.booking_number in self._by_number:
                raise DuplicateBookingNumberError(
                    f"Booking number '{booking.booking_number}' already issued",
                    details={"booking_number": booking.booking_number},
                )
            stored = booking.model_copy(deep=True, update={"version": 1})
            self._by_id[stored.id] = stored
            self._by_number[stored.booking_number] = stored.id
            self._by_provider_day[(stored.provider_ref, stored.scheduled_date)].add(stored.id)
            logger.debug("Stored booking %s", stored.booking_number)
            return stored.model_copy(deep=True)

    def find(self, booking_id: str) -> Optional[Booking]:
        with self._lock:
            booking = self._by_id.get(booking_id)
            return booking.model_copy(deep=True) if booking else None

    def get(self, booking_id: str) -> Booking:
        booking = self.find(booking_id)
        if booking is None:
            raise NotFoundError("booking", booking_id)
        return booking

    def get_by_number(self, booking_number: str) -> Booking:
        with self._lock:
            booking_id = self._by_number.get(booking_number)
        if booking_id is None:
            raise NotFoundError("booking", booking_number)
        return self.get(booking_id)

    def save(self, booking: Booking, expected_version: int) -> Booking:
        """Replace a booking if the stored version still equals ``expected_version``.

        Raises:
            NotFoundError: If the booking was never added.
            StaleBookingError: If another writer saved first.
        """
        with self._lock:
            current = self._by_id.get(booking.id)
            if current is None:
                raise NotFoundError("booking", booking.id)
            if current.version != expected_version:
                logger.warning(
                    "Stale write to %s: expected v%d, stored v%d",
                    booking.booking_number, expected_version, current.version,
                )
                raise StaleBookingError(booking.id, expected_version, current.version)
            if booking.booking_number != current.booking_number:
                raise DuplicateBookingNumberError(
                    f"Booking number of '{booking.id}' is immutable"
                )
            stored = booking.model_copy(deep=True, update={"version": current.version + 1})
            old_key = (current.provider_ref, current.scheduled_date)
            new_key = (stored.provider_ref, stored.scheduled_date)
            if old_key != new_key:
                self._by_provider_day[old_key].discard(stored.id)
                self._by_provider_day[new_key].add(stored.id)
            self._by_id[stored.id] = stored
            return stored.model_copy(deep=True)

    def list_for_provider_day(
        self,
        provider_id: str,
        day: date,
        statuses: Iterable[BookingStatus] = ACTIVE_STATUSES,
    ) -> list[Booking]:
        wanted = set(statuses)
        with self._lock:
            ids = self._by_provider_day.get((provider_id, day), set())
            bookings = [self._by_id[booking_id] for booking_id in ids]
            return sorted(
                (b.model_copy(deep=True) for b in bookings if b.status in wanted),
                key=lambda b: b.scheduled_start_minute,
            )

    def list_for_customer(self, customer_id: str) -> list[Booking]:
        with self._lock:
            return sorted(
                (b.model_copy(deep=True) for b in self._by_id.values() if b.customer_ref == customer_id),
                key=lambda b: b.created_at,
                reverse=True,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)

    def reset(self) -> None:
        """Clear all bookings. Used by test fixtures for isolation."""
        with self._lock:
            self._by_id.clear()
            self._by_number.clear()
            self._by_provider_day.clear()
            self.sequence.clear()
