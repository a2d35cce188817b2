"""Tests for slot availability resolution."""

from datetime import date, datetime, timedelta, timezone

import pytest

from reservation_engine.availability.resolver import (
    AlternativeSlots,
    ReasonCode,
    find_conflict,
)
from reservation_engine.schemas.booking_schema import BookingStatus
from reservation_engine.schemas.schedule_schema import (
    BlockedPeriod,
    DateException,
    DaySchedule,
    ExceptionKind,
    TimeSlot,
    WeeklySchedule,
)
from tests.conftest import (
    FRIDAY,
    MONDAY,
    NOW,
    OTHER_PROVIDER_ID,
    SATURDAY,
    TUESDAY,
    make_booking,
    make_schedule,
)


def check(resolver, schedule, day=MONDAY, start=600, duration=120, bookings=(), now=NOW):
    return resolver.check_slot(schedule, None, list(bookings), day, start, duration, now)


class TestOpenSlot:
    def test_monday_morning_is_bookable(self, resolver, schedule):
        result = check(resolver, schedule, start=10 * 60, duration=120)
        assert result.ok
        assert result.reason_code == ReasonCode.OK
        assert result.alternatives is None

    def test_window_ending_exactly_at_close_is_bookable(self, resolver, schedule):
        assert check(resolver, schedule, start=15 * 60, duration=120).ok

    def test_window_starting_at_open_is_bookable(self, resolver, schedule):
        assert check(resolver, schedule, start=9 * 60, duration=60).ok


class TestProfileAndDuration:
    def test_missing_schedule_is_no_profile(self, resolver):
        result = check(resolver, None)
        assert result.reason_code == ReasonCode.NO_PROFILE
        assert not result.ok

    def test_duration_too_short(self, resolver, schedule):
        assert check(resolver, schedule, duration=10).reason_code == ReasonCode.INVALID_DURATION

    def test_duration_too_long(self, resolver, schedule):
        assert check(resolver, schedule, duration=481).reason_code == ReasonCode.INVALID_DURATION


class TestDayAvailability:
    def test_closed_weekday(self, resolver, schedule):
        result = check(resolver, schedule, day=SATURDAY + timedelta(days=7))
        assert result.reason_code == ReasonCode.NOT_AVAILABLE_DAY

    def test_open_day_without_slots_is_unavailable(self, resolver):
        weekly = WeeklySchedule(monday=DaySchedule(is_available=True, slots=[]))
        result = check(resolver, make_schedule(weekly=weekly))
        assert result.reason_code == ReasonCode.NOT_AVAILABLE_DAY

    def test_unavailable_date_exception(self, resolver):
        schedule = make_schedule(exceptions=[
            DateException(date=MONDAY, kind=ExceptionKind.UNAVAILABLE, reason="Holiday"),
        ])
        result = check(resolver, schedule)
        assert result.reason_code == ReasonCode.DATE_EXCEPTION

    def test_explicit_exceptions_override_schedule_list(self, resolver, schedule):
        exceptions = [DateException(date=MONDAY, kind=ExceptionKind.UNAVAILABLE)]
        result = resolver.check_slot(schedule, exceptions, [], MONDAY, 600, 60, NOW)
        assert result.reason_code == ReasonCode.DATE_EXCEPTION

    def test_exception_for_other_date_is_ignored(self, resolver):
        schedule = make_schedule(exceptions=[
            DateException(date=TUESDAY, kind=ExceptionKind.UNAVAILABLE),
        ])
        assert check(resolver, schedule).ok

    def test_blocked_period_is_date_exception(self, resolver):
        schedule = make_schedule(blocked_periods=[
            BlockedPeriod(start_date=MONDAY, end_date=TUESDAY, title="Vacation"),
        ])
        result = check(resolver, schedule, day=TUESDAY)
        assert result.reason_code == ReasonCode.DATE_EXCEPTION
        assert "Vacation" in result.message

    def test_closed_weekday_wins_over_exception(self, resolver):
        day = SATURDAY + timedelta(days=7)
        schedule = make_schedule(exceptions=[
            DateException(date=day, kind=ExceptionKind.UNAVAILABLE),
        ])
        assert check(resolver, schedule, day=day).reason_code == ReasonCode.NOT_AVAILABLE_DAY


class TestCustomException:
    def test_custom_slots_replace_weekly_slots(self, resolver):
        schedule = make_schedule(exceptions=[
            DateException(
                date=MONDAY,
                kind=ExceptionKind.CUSTOM,
                slots=[TimeSlot.from_hhmm("12:00", "15:00")],
            ),
        ])
        assert check(resolver, schedule, start=12 * 60, duration=120).ok
        result = check(resolver, schedule, start=10 * 60, duration=120)
        assert result.reason_code == ReasonCode.NOT_IN_SLOT
        assert result.alternatives.as_times() == ["12:00", "12:30", "13:00"]


class TestSameDayCutoff:
    def test_start_inside_buffer_is_past_slot(self, resolver, schedule):
        now = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)
        result = check(resolver, schedule, start=10 * 60 + 30, duration=60, now=now)
        assert result.reason_code == ReasonCode.PAST_SLOT

    def test_past_slot_alternatives_respect_buffer(self, resolver, schedule):
        now = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)
        result = check(resolver, schedule, start=9 * 60, duration=60, now=now)
        times = result.alternatives.as_times()
        assert times[0] == "11:00"
        assert times[-1] == "16:00"

    def test_start_exactly_at_buffer_is_allowed(self, resolver, schedule):
        now = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)
        assert check(resolver, schedule, start=11 * 60, duration=60, now=now).ok

    def test_past_date_is_past_slot_without_alternatives(self, resolver, schedule):
        now = datetime(2026, 3, 3, 8, 0, tzinfo=timezone.utc)
        result = check(resolver, schedule, day=MONDAY, now=now)
        assert result.reason_code == ReasonCode.PAST_SLOT
        assert result.alternatives is None

    def test_today_is_evaluated_in_provider_timezone(self, resolver):
        schedule = make_schedule(timezone="Asia/Dubai")
        # 06:30 UTC is 10:30 in Dubai (UTC+4), so the cutoff is 11:30 local.
        now = datetime(2026, 3, 2, 6, 30, tzinfo=timezone.utc)
        assert check(resolver, schedule, start=11 * 60, duration=60, now=now).reason_code == (
            ReasonCode.PAST_SLOT
        )
        assert check(resolver, schedule, start=11 * 60 + 30, duration=60, now=now).ok

    def test_naive_now_is_read_as_provider_local(self, resolver):
        schedule = make_schedule(timezone="Asia/Dubai")
        now = datetime(2026, 3, 2, 10, 30)
        assert check(resolver, schedule, start=11 * 60, duration=60, now=now).reason_code == (
            ReasonCode.PAST_SLOT
        )


class TestAdvanceLimit:
    def test_beyond_default_limit(self, resolver, schedule):
        far = FRIDAY + timedelta(days=31)  # first Monday past the 30-day window
        assert far.weekday() == 0
        assert check(resolver, schedule, day=far).reason_code == ReasonCode.ADVANCE_LIMIT

    def test_schedule_limit_overrides_default(self, resolver):
        schedule = make_schedule(max_advance_booking_days=2)
        assert check(resolver, schedule).reason_code == ReasonCode.ADVANCE_LIMIT

    def test_zero_limit_allows_same_day_only(self, resolver):
        schedule = make_schedule(max_advance_booking_days=0)
        now = datetime(2026, 3, 2, 6, 0, tzinfo=timezone.utc)
        assert check(resolver, schedule, now=now).ok
        assert check(resolver, schedule, day=TUESDAY, now=now).reason_code == (
            ReasonCode.ADVANCE_LIMIT
        )


class TestNotInSlot:
    def test_overruns_closing_time(self, resolver, schedule):
        result = check(resolver, schedule, start=16 * 60, duration=120)
        assert result.reason_code == ReasonCode.NOT_IN_SLOT
        assert "15:00" in result.alternatives.as_times()

    def test_before_opening(self, resolver, schedule):
        result = check(resolver, schedule, start=8 * 60, duration=60)
        assert result.reason_code == ReasonCode.NOT_IN_SLOT

    def test_window_cannot_straddle_two_slots(self, resolver):
        weekly = WeeklySchedule(monday=DaySchedule(is_available=True, slots=[
            TimeSlot.from_hhmm("09:00", "12:00"),
            TimeSlot.from_hhmm("13:00", "17:00"),
        ]))
        result = check(resolver, make_schedule(weekly=weekly), start=11 * 60, duration=180)
        assert result.reason_code == ReasonCode.NOT_IN_SLOT

    def test_full_slot_is_not_bookable(self, resolver):
        weekly = WeeklySchedule(monday=DaySchedule(is_available=True, slots=[
            TimeSlot.from_hhmm("09:00", "17:00", max_concurrent=2, current_count=2),
        ]))
        result = check(resolver, make_schedule(weekly=weekly))
        assert result.reason_code == ReasonCode.NOT_IN_SLOT
        assert result.alternatives.to_list() == []

    def test_booked_slot_is_not_bookable(self, resolver):
        weekly = WeeklySchedule(monday=DaySchedule(is_available=True, slots=[
            TimeSlot.from_hhmm("09:00", "12:00", is_booked=True),
            TimeSlot.from_hhmm("13:00", "15:00"),
        ]))
        result = check(resolver, make_schedule(weekly=weekly), start=9 * 60, duration=60)
        assert result.reason_code == ReasonCode.NOT_IN_SLOT
        assert result.alternatives.as_times() == ["13:00", "13:30", "14:00"]


class TestConflict:
    def test_overlapping_active_booking(self, resolver, schedule):
        held = make_booking(start=10 * 60, duration=120)
        result = check(resolver, schedule, start=11 * 60, duration=60, bookings=[held])
        assert result.reason_code == ReasonCode.CONFLICT
        assert result.alternatives is None
        assert result.conflicting_booking == held.booking_number

    def test_adjacent_booking_does_not_conflict(self, resolver, schedule):
        held = make_booking(start=10 * 60, duration=120)
        assert check(resolver, schedule, start=12 * 60, duration=60, bookings=[held]).ok

    @pytest.mark.parametrize("status", [BookingStatus.CANCELLED, BookingStatus.COMPLETED,
                                        BookingStatus.NO_SHOW])
    def test_terminal_bookings_do_not_block(self, resolver, schedule, status):
        held = make_booking(status=status, start=10 * 60, duration=120)
        assert check(resolver, schedule, start=11 * 60, duration=60, bookings=[held]).ok

    def test_other_provider_does_not_block(self, resolver, schedule):
        held = make_booking(provider_id=OTHER_PROVIDER_ID)
        assert check(resolver, schedule, bookings=[held]).ok

    def test_other_date_does_not_block(self, resolver, schedule):
        held = make_booking(day=TUESDAY)
        assert check(resolver, schedule, bookings=[held]).ok

    def test_find_conflict_returns_none_for_empty(self):
        assert find_conflict([], "prov-1", MONDAY, 600, 660) is None


class TestAlternativeSlots:
    def test_steps_by_thirty_minutes(self):
        slots = AlternativeSlots([TimeSlot.from_hhmm("09:00", "11:00")], 60, 30)
        assert slots.as_times() == ["09:00", "09:30", "10:00"]

    def test_is_restartable(self):
        slots = AlternativeSlots([TimeSlot.from_hhmm("09:00", "17:00")], 120, 30)
        assert list(slots) == list(slots)
        assert len(slots.to_list()) == 13

    def test_duration_longer_than_slot_yields_nothing(self):
        slots = AlternativeSlots([TimeSlot.from_hhmm("09:00", "10:00")], 90, 30)
        assert slots.to_list() == []

    def test_earliest_start_filters(self):
        slots = AlternativeSlots([TimeSlot.from_hhmm("09:00", "12:00")], 60, 30, earliest_start=630)
        assert slots.as_times() == ["10:30", "11:00"]

    def test_alternatives_for_closed_day_are_empty(self, resolver, schedule):
        assert resolver.alternatives_for(schedule, SATURDAY, 60, NOW).to_list() == []

    def test_alternatives_for_past_day_are_empty(self, resolver, schedule):
        now = datetime(2026, 3, 3, 8, 0, tzinfo=timezone.utc)
        assert resolver.alternatives_for(schedule, MONDAY, 60, now).to_list() == []

    def test_list_available_starts_skips_booked_windows(self, resolver, schedule):
        held = make_booking(start=10 * 60, duration=120)
        starts = resolver.list_available_starts(schedule, [held], MONDAY, 60, NOW)
        assert 9 * 60 in starts
        assert 10 * 60 not in starts
        assert 11 * 60 + 30 not in starts
        assert 12 * 60 in starts


class TestScheduleModel:
    def test_closed_day_with_slots_is_rejected(self):
        with pytest.raises(ValueError):
            DaySchedule(is_available=False, slots=[TimeSlot.from_hhmm("09:00", "10:00")])

    def test_slot_must_end_after_start(self):
        with pytest.raises(ValueError):
            TimeSlot(start_minute=600, end_minute=600)

    def test_duplicate_exception_dates_rejected(self):
        with pytest.raises(ValueError):
            make_schedule(exceptions=[
                DateException(date=MONDAY, kind=ExceptionKind.UNAVAILABLE),
                DateException(date=MONDAY, kind=ExceptionKind.UNAVAILABLE),
            ])

    def test_with_exception_replaces_same_date(self, schedule):
        first = schedule.with_exception(DateException(date=MONDAY, kind=ExceptionKind.UNAVAILABLE))
        second = first.with_exception(DateException(
            date=MONDAY, kind=ExceptionKind.CUSTOM, slots=[TimeSlot.from_hhmm("10:00", "12:00")],
        ))
        assert len(second.exceptions) == 1
        assert second.exception_for(MONDAY).kind == ExceptionKind.CUSTOM

    def test_unavailable_exception_cannot_have_slots(self):
        with pytest.raises(ValueError):
            DateException(
                date=date(2026, 3, 2),
                kind=ExceptionKind.UNAVAILABLE,
                slots=[TimeSlot.from_hhmm("09:00", "10:00")],
            )

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            make_schedule(timezone="Mars/Olympus_Mons")

    def test_known_timezone_accepted(self):
        assert make_schedule(timezone="Asia/Dubai").timezone == "Asia/Dubai"
