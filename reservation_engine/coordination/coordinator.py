"""
Atomic check-then-insert for new reservations.

The availability check and the insert of the pending booking run inside
one critical section keyed by ``(provider_id, date)``. Two overlapping
requests for the same provider-day are therefore serialized: the second
one sees the first booking in its conflict scan and gets ``SLOT_CONFLICT``.
Requests for other providers or other days take other locks and proceed
in parallel.

Usage:
    coordinator = ReservationCoordinator(repository, lifecycle, catalog)
    result = coordinator.reserve("prov-1", "svc-1", day, 600, 120, info, pricing)
    if result.status is ReservationStatus.SLOT_CONFLICT:
        ...
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Callable, Optional

from reservation_engine.availability.resolver import (
    AvailabilityResolver,
    ReasonCode,
    SlotCheckResult,
)
from reservation_engine.config import AppConfig, settings
from reservation_engine.coordination.locks import KeyedLockTable
from reservation_engine.errors import DuplicateBookingNumberError, LockTimeoutError
from reservation_engine.lifecycle.state_machine import BookingLifecycle
from reservation_engine.logging_context import get_request_logger
from reservation_engine.schemas.booking_schema import (
    Actor,
    Booking,
    BookingStatus,
    CustomerInfo,
    Location,
    Pricing,
)
from reservation_engine.storage.catalog import InMemoryCatalog
from reservation_engine.storage.repository import BookingRepository
from reservation_engine.utils import format_hhmm, utc_now


class ReservationStatus(str, Enum):
    """Outcome category of a reservation attempt."""
    RESERVED = "RESERVED"
    SLOT_CONFLICT = "SLOT_CONFLICT"
    UNAVAILABLE = "UNAVAILABLE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    BUSY = "BUSY"


BUSY_REASON = "RESERVATION_BUSY"

_STATUS_FOR_REASON = {
    ReasonCode.CONFLICT: ReservationStatus.SLOT_CONFLICT,
    ReasonCode.INVALID_DURATION: ReservationStatus.VALIDATION_ERROR,
}


@dataclass(frozen=True)
class ReservationResult:
    """Typed result of a reservation attempt. Failures are returned, not raised."""

    status: ReservationStatus
    booking: Optional[Booking] = None
    reason_code: Optional[str] = None
    message: str = ""
    alternatives: list[int] = field(default_factory=list)
    retryable: bool = False

    @property
    def ok(self) -> bool:
        return self.status == ReservationStatus.RESERVED

    @property
    def alternative_times(self) -> list[str]:
        return [format_hhmm(minute) for minute in self.alternatives]


class ReservationCoordinator:
    """Serializes check-and-insert per provider-day."""

    def __init__(
        self,
        repository: BookingRepository,
        lifecycle: BookingLifecycle,
        catalog: InMemoryCatalog,
        resolver: Optional[AvailabilityResolver] = None,
        locks: Optional[KeyedLockTable] = None,
        config: AppConfig = settings,
        clock: Callable[[], datetime] = utc_now,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.repository = repository
        self.lifecycle = lifecycle
        self.catalog = catalog
        self.resolver = resolver if resolver is not None else AvailabilityResolver(config.scheduling)
        self.locks = locks if locks is not None else KeyedLockTable()
        self.config = config
        self.clock = clock
        self.logger = logger or get_request_logger(__name__)

    def reserve(
        self,
        provider_id: str,
        service_id: str,
        day: date,
        start_minute: int,
        duration_minutes: int,
        customer_info: CustomerInfo,
        pricing: Pricing,
        *,
        customer_id: Optional[str] = None,
        location: Optional[Location] = None,
        payment_method: Optional[str] = None,
    ) -> ReservationResult:
        """
        Check the slot and create a pending booking as one atomic step.

        Returns:
            ``RESERVED`` with the booking, or a failure result carrying the
            resolver reason code and alternatives. ``BUSY`` results are
            retryable; nothing is written on any failure.
        """
        provider = self.catalog.find_provider(provider_id)
        if provider is None:
            return ReservationResult(
                status=ReservationStatus.NOT_FOUND,
                message=f"Provider '{provider_id}' not found",
            )

        key = (provider_id, day)
        try:
            with self.locks.hold(key, self.config.concurrency.lock_timeout_seconds):
                schedule = self.catalog.get_schedule(provider_id)
                existing = self.repository.list_for_provider_day(provider_id, day)
                check = self.resolver.check_slot(
                    schedule,
                    None,
                    existing,
                    day,
                    start_minute,
                    duration_minutes,
                    self.clock(),
                )
                if not check.ok:
                    return self._refused(check, provider_id, day, start_minute)

                booking = self.lifecycle.create_pending(
                    provider_id=provider_id,
                    service_id=service_id,
                    day=day,
                    start_minute=start_minute,
                    duration_minutes=duration_minutes,
                    pricing=pricing,
                    customer_info=customer_info,
                    customer_id=customer_id,
                    business_name=provider.business_name,
                    timezone=schedule.timezone,
                    location=location,
                    payment_method=payment_method,
                )
                if provider.auto_accept_bookings:
                    booking = self.lifecycle.transition(
                        booking,
                        BookingStatus.CONFIRMED,
                        Actor.SYSTEM,
                        reason="Auto-accepted by provider settings",
                    )
        except (LockTimeoutError, DuplicateBookingNumberError) as exc:
            self.logger.warning(
                "Reservation for provider %s on %s not completed: %s",
                provider_id, day.isoformat(), exc.message,
            )
            return ReservationResult(
                status=ReservationStatus.BUSY,
                reason_code=BUSY_REASON,
                message=exc.message,
                retryable=True,
            )

        return ReservationResult(
            status=ReservationStatus.RESERVED,
            booking=booking,
            reason_code=ReasonCode.OK.value,
        )

    def _refused(
        self, check: SlotCheckResult, provider_id: str, day: date, start_minute: int
    ) -> ReservationResult:
        status = _STATUS_FOR_REASON.get(check.reason_code, ReservationStatus.UNAVAILABLE)
        if status == ReservationStatus.SLOT_CONFLICT:
            self.logger.warning(
                "Slot conflict for provider %s on %s at %s (held by %s)",
                provider_id, day.isoformat(), format_hhmm(start_minute),
                check.conflicting_booking,
            )
        else:
            self.logger.info(
                "Reservation refused for provider %s on %s: %s",
                provider_id, day.isoformat(), check.reason_code.value,
            )
        return ReservationResult(
            status=status,
            reason_code=check.reason_code.value,
            message=check.message,
            alternatives=check.alternatives.to_list() if check.alternatives else [],
            retryable=status == ReservationStatus.SLOT_CONFLICT,
        )
