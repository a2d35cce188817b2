"""Provider schedule models: weekly hours, date exceptions and blocked periods."""

import datetime as dt
from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from reservation_engine.utils import MINUTES_PER_DAY, parse_hhmm, validate_timezone


class Weekday(str, Enum):
    """Weekday names, ordered to match ``date.weekday()``."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def of(cls, day: date) -> "Weekday":
        return list(cls)[day.weekday()]


class ExceptionKind(str, Enum):
    UNAVAILABLE = "unavailable"
    CUSTOM = "custom"


class TimeSlot(BaseModel):
    """An open interval within a day, in minutes since midnight."""

    start_minute: int = Field(ge=0, lt=MINUTES_PER_DAY)
    end_minute: int = Field(gt=0, le=MINUTES_PER_DAY)
    is_booked: bool = False
    max_concurrent: int = Field(default=1, ge=1)
    current_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "TimeSlot":
        if self.start_minute >= self.end_minute:
            raise ValueError("Slot start must be before slot end")
        return self

    @classmethod
    def from_hhmm(cls, start: str, end: str, **kwargs) -> "TimeSlot":
        return cls(start_minute=parse_hhmm(start), end_minute=parse_hhmm(end), **kwargs)

    @property
    def is_full(self) -> bool:
        return self.current_count >= self.max_concurrent

    @property
    def is_open(self) -> bool:
        """Accepting new bookings: not flagged booked and not at capacity."""
        return not self.is_booked and not self.is_full

    def contains(self, start_minute: int, end_minute: int) -> bool:
        return self.start_minute <= start_minute and end_minute <= self.end_minute


class DaySchedule(BaseModel):
    """Recurring hours for one weekday."""

    is_available: bool = False
    slots: list[TimeSlot] = Field(default_factory=list)

    @model_validator(mode="after")
    def _closed_day_has_no_slots(self) -> "DaySchedule":
        if not self.is_available and self.slots:
            raise ValueError("An unavailable day cannot define time slots")
        return self


class WeeklySchedule(BaseModel):
    """The seven weekdays, each closed unless configured."""

    monday: DaySchedule = Field(default_factory=DaySchedule)
    tuesday: DaySchedule = Field(default_factory=DaySchedule)
    wednesday: DaySchedule = Field(default_factory=DaySchedule)
    thursday: DaySchedule = Field(default_factory=DaySchedule)
    friday: DaySchedule = Field(default_factory=DaySchedule)
    saturday: DaySchedule = Field(default_factory=DaySchedule)
    sunday: DaySchedule = Field(default_factory=DaySchedule)

    def for_day(self, weekday: Weekday) -> DaySchedule:
        return getattr(self, weekday.value)


class DateException(BaseModel):
    """One-off override of the weekly schedule for a calendar date."""

    date: dt.date
    kind: ExceptionKind
    slots: list[TimeSlot] = Field(default_factory=list)
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _slots_only_for_custom(self) -> "DateException":
        if self.kind == ExceptionKind.UNAVAILABLE and self.slots:
            raise ValueError("An 'unavailable' exception cannot define time slots")
        return self


class BlockedPeriod(BaseModel):
    """Inclusive range of dates on which the provider takes no bookings."""

    start_date: date
    end_date: date
    title: str = "Blocked"
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _ordered(self) -> "BlockedPeriod":
        if self.end_date < self.start_date:
            raise ValueError("Blocked period must end on or after its start date")
        return self

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class ProviderSchedule(BaseModel):
    """Everything the resolver needs to know about one provider's hours."""

    provider_id: str
    weekly: WeeklySchedule = Field(default_factory=WeeklySchedule)
    exceptions: list[DateException] = Field(default_factory=list)
    blocked_periods: list[BlockedPeriod] = Field(default_factory=list)
    timezone: str = "UTC"
    max_advance_booking_days: Optional[int] = Field(default=None, ge=0)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        return validate_timezone(value)

    @model_validator(mode="after")
    def _one_exception_per_date(self) -> "ProviderSchedule":
        seen: set[date] = set()
        for exception in self.exceptions:
            if exception.date in seen:
                raise ValueError(f"Duplicate date exception for {exception.date.isoformat()}")
            seen.add(exception.date)
        return self

    def exception_for(self, day: date) -> Optional[DateException]:
        return next((ex for ex in self.exceptions if ex.date == day), None)

    def blocked_period_for(self, day: date) -> Optional[BlockedPeriod]:
        return next((bp for bp in self.blocked_periods if bp.covers(day)), None)

    def with_exception(self, exception: DateException) -> "ProviderSchedule":
        """Return a copy with ``exception`` replacing any existing one for its date."""
        kept = [ex for ex in self.exceptions if ex.date != exception.date]
        return self.model_copy(update={"exceptions": kept + [exception]})


def default_weekly_schedule() -> WeeklySchedule:
    """Monday to Friday 09:00-17:00, weekend closed."""
    open_day = DaySchedule(is_available=True, slots=[TimeSlot.from_hhmm("09:00", "17:00")])
    return WeeklySchedule(
        monday=open_day,
        tuesday=open_day.model_copy(deep=True),
        wednesday=open_day.model_copy(deep=True),
        thursday=open_day.model_copy(deep=True),
        friday=open_day.model_copy(deep=True),
    )
