"""
Slot availability resolution against a provider's schedule.

Checks a requested window in a fixed order and stops at the first
failure, so every refusal carries one distinct reason code:

    NO_PROFILE -> INVALID_DURATION -> NOT_AVAILABLE_DAY -> DATE_EXCEPTION
    -> PAST_SLOT / ADVANCE_LIMIT -> NOT_IN_SLOT -> CONFLICT -> OK

Usage:
    resolver = AvailabilityResolver()
    result = resolver.check_slot(schedule, schedule.exceptions, bookings,
                                 day, start_minute=600, duration_minutes=120, now=now)
    if not result.ok:
        suggestions = result.alternatives.as_times() if result.alternatives else []
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterable, Iterator, Optional, Sequence

from reservation_engine.config import SchedulingConfig, settings
from reservation_engine.logging_context import get_request_logger
from reservation_engine.schemas.booking_schema import ACTIVE_STATUSES, Booking
from reservation_engine.schemas.schedule_schema import (
    DateException,
    ExceptionKind,
    ProviderSchedule,
    TimeSlot,
    Weekday,
)
from reservation_engine.utils import (
    format_hhmm,
    intervals_overlap,
    local_now,
    resolve_timezone,
)


class ReasonCode(str, Enum):
    """Outcome of a slot check."""
    OK = "OK"
    NO_PROFILE = "NO_PROFILE"
    INVALID_DURATION = "INVALID_DURATION"
    NOT_AVAILABLE_DAY = "NOT_AVAILABLE_DAY"
    DATE_EXCEPTION = "DATE_EXCEPTION"
    PAST_SLOT = "PAST_SLOT"
    ADVANCE_LIMIT = "ADVANCE_LIMIT"
    NOT_IN_SLOT = "NOT_IN_SLOT"
    CONFLICT = "CONFLICT"


class AlternativeSlots:
    """Candidate start minutes inside open slots.

    Lazy and finite. Each ``iter()`` starts a fresh pass over the slots,
    so the same object can be enumerated any number of times.
    """

    def __init__(
        self,
        slots: Sequence[TimeSlot],
        duration_minutes: int,
        step_minutes: int,
        earliest_start: Optional[int] = None,
    ) -> None:
        self._slots = tuple(slots)
        self.duration_minutes = duration_minutes
        self.step_minutes = step_minutes
        self.earliest_start = earliest_start

    def __iter__(self) -> Iterator[int]:
        for slot in self._slots:
            if not slot.is_open:
                continue
            candidate = slot.start_minute
            while candidate + self.duration_minutes <= slot.end_minute:
                if self.earliest_start is None or candidate >= self.earliest_start:
                    yield candidate
                candidate += self.step_minutes

    def __repr__(self) -> str:
        return (
            f"AlternativeSlots(duration={self.duration_minutes}, "
            f"step={self.step_minutes}, earliest={self.earliest_start})"
        )

    def to_list(self) -> list[int]:
        return list(self)

    def as_times(self) -> list[str]:
        """Alternatives as ``HH:MM`` strings."""
        return [format_hhmm(minute) for minute in self]


@dataclass(frozen=True)
class SlotCheckResult:
    """Typed result of ``AvailabilityResolver.check_slot``."""

    reason_code: ReasonCode
    message: str = ""
    alternatives: Optional[AlternativeSlots] = None
    conflicting_booking: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason_code == ReasonCode.OK


class AvailabilityResolver:
    """Decides whether a time window is bookable and suggests alternatives."""

    def __init__(
        self,
        config: SchedulingConfig = settings.scheduling,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.logger = logger or get_request_logger(__name__)

    def check_slot(
        self,
        schedule: Optional[ProviderSchedule],
        exceptions: Optional[Iterable[DateException]],
        existing_bookings: Iterable[Booking],
        day: date,
        start_minute: int,
        duration_minutes: int,
        now: datetime,
    ) -> SlotCheckResult:
        """
        Check a requested window against schedule, exceptions and bookings.

        Args:
            schedule: The provider's schedule, or None if never configured.
            exceptions: Date exceptions to apply; None uses ``schedule.exceptions``.
            existing_bookings: Bookings to scan for overlaps. Only active
                bookings of the same provider on ``day`` are considered.
            day: Requested calendar date, in the provider's timezone.
            start_minute: Requested start, minutes since midnight.
            duration_minutes: Requested length.
            now: Current instant; naive values are read as provider-local.

        Returns:
            A SlotCheckResult whose ``reason_code`` is OK or the first failure.
        """
        if schedule is None:
            return self._refuse(ReasonCode.NO_PROFILE, "Provider availability not configured")

        if not (
            self.config.min_duration_minutes
            <= duration_minutes
            <= self.config.max_duration_minutes
        ):
            return self._refuse(
                ReasonCode.INVALID_DURATION,
                f"Duration must be between {self.config.min_duration_minutes} and "
                f"{self.config.max_duration_minutes} minutes",
            )

        day_schedule = schedule.weekly.for_day(Weekday.of(day))
        if not day_schedule.is_available or not day_schedule.slots:
            return self._refuse(
                ReasonCode.NOT_AVAILABLE_DAY, "Provider is not available on this day"
            )

        exception = self._exception_for(schedule, exceptions, day)
        if exception is not None and exception.kind == ExceptionKind.UNAVAILABLE:
            return self._refuse(
                ReasonCode.DATE_EXCEPTION, "Provider is not available on this date"
            )
        blocked = schedule.blocked_period_for(day)
        if blocked is not None:
            return self._refuse(
                ReasonCode.DATE_EXCEPTION, f"Provider is unavailable: {blocked.title}"
            )

        slots = exception.slots if exception is not None else day_schedule.slots
        local = local_now(now, resolve_timezone(schedule.timezone))
        today = local.date()

        if day < today:
            return self._refuse(ReasonCode.PAST_SLOT, "Requested date is in the past")

        earliest_start: Optional[int] = None
        if day == today:
            earliest_start = (
                local.hour * 60 + local.minute + self.config.same_day_buffer_minutes
            )
            if start_minute < earliest_start:
                return self._refuse(
                    ReasonCode.PAST_SLOT,
                    "This time slot is no longer available for today",
                    self._alternatives(slots, duration_minutes, earliest_start),
                )

        limit = self._advance_limit(schedule)
        if limit is not None and day > today + timedelta(days=limit):
            return self._refuse(
                ReasonCode.ADVANCE_LIMIT,
                f"Bookings can be made at most {limit} days in advance",
            )

        end_minute = start_minute + duration_minutes
        if not any(slot.is_open and slot.contains(start_minute, end_minute) for slot in slots):
            return self._refuse(
                ReasonCode.NOT_IN_SLOT,
                "Provider is not available at the requested time",
                self._alternatives(slots, duration_minutes, earliest_start),
            )

        conflict = find_conflict(
            existing_bookings, schedule.provider_id, day, start_minute, end_minute
        )
        if conflict is not None:
            self.logger.debug(
                "Slot %s %s+%d conflicts with %s",
                day.isoformat(), format_hhmm(start_minute), duration_minutes,
                conflict.booking_number,
            )
            return SlotCheckResult(
                reason_code=ReasonCode.CONFLICT,
                message="Time slot is already booked",
                conflicting_booking=conflict.booking_number,
            )

        return SlotCheckResult(reason_code=ReasonCode.OK)

    def alternatives_for(
        self,
        schedule: ProviderSchedule,
        day: date,
        duration_minutes: int,
        now: datetime,
    ) -> AlternativeSlots:
        """Enumerate candidate starts for ``day`` without checking bookings.

        A closed weekday or an unavailable date yields an empty sequence.
        """
        day_schedule = schedule.weekly.for_day(Weekday.of(day))
        exception = schedule.exception_for(day)
        closed = (
            not day_schedule.is_available
            or schedule.blocked_period_for(day) is not None
            or (exception is not None and exception.kind == ExceptionKind.UNAVAILABLE)
        )
        if closed:
            return self._alternatives((), duration_minutes, None)

        slots = exception.slots if exception is not None else day_schedule.slots
        local = local_now(now, resolve_timezone(schedule.timezone))
        earliest_start = None
        if day == local.date():
            earliest_start = (
                local.hour * 60 + local.minute + self.config.same_day_buffer_minutes
            )
        elif day < local.date():
            slots = ()
        return self._alternatives(slots, duration_minutes, earliest_start)

    def list_available_starts(
        self,
        schedule: ProviderSchedule,
        existing_bookings: Iterable[Booking],
        day: date,
        duration_minutes: int,
        now: datetime,
    ) -> list[int]:
        """Alternatives for ``day`` that do not collide with active bookings."""
        bookings = list(existing_bookings)
        return [
            start
            for start in self.alternatives_for(schedule, day, duration_minutes, now)
            if find_conflict(
                bookings, schedule.provider_id, day, start, start + duration_minutes
            ) is None
        ]

    def _alternatives(
        self,
        slots: Sequence[TimeSlot],
        duration_minutes: int,
        earliest_start: Optional[int],
    ) -> AlternativeSlots:
        return AlternativeSlots(
            slots, duration_minutes, self.config.slot_step_minutes, earliest_start
        )

    def _advance_limit(self, schedule: ProviderSchedule) -> Optional[int]:
        if schedule.max_advance_booking_days is not None:
            return schedule.max_advance_booking_days
        return self.config.max_advance_booking_days

    @staticmethod
    def _exception_for(
        schedule: ProviderSchedule,
        exceptions: Optional[Iterable[DateException]],
        day: date,
    ) -> Optional[DateException]:
        if exceptions is None:
            return schedule.exception_for(day)
        return next((ex for ex in exceptions if ex.date == day), None)

    def _refuse(
        self,
        code: ReasonCode,
        message: str,
        alternatives: Optional[AlternativeSlots] = None,
    ) -> SlotCheckResult:
        self.logger.debug("Slot refused: %s (%s)", code.value, message)
        return SlotCheckResult(reason_code=code, message=message, alternatives=alternatives)


def find_conflict(
    bookings: Iterable[Booking],
    provider_id: str,
    day: date,
    start_minute: int,
    end_minute: int,
) -> Optional[Booking]:
    """First active booking of ``provider_id`` on ``day`` overlapping the window."""
    for booking in bookings:
        if booking.provider_ref != provider_id or booking.scheduled_date != day:
            continue
        if booking.status not in ACTIVE_STATUSES:
            continue
        if intervals_overlap(start_minute, end_minute, booking.scheduled_start_minute, booking.end_minute):
            return booking
    return None
