"""Shared test fixtures and helpers."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import pytest

from reservation_engine.availability.resolver import AvailabilityResolver
from reservation_engine.events import EventPublisher
from reservation_engine.lifecycle.refund import RefundPolicyEngine
from reservation_engine.lifecycle.state_machine import BookingLifecycle
from reservation_engine.schemas.booking_schema import (
    Actor,
    Booking,
    BookingStatus,
    CancellationPolicy,
    Pricing,
    StatusHistoryEntry,
)
from reservation_engine.schemas.schedule_schema import (
    BlockedPeriod,
    DateException,
    ProviderSchedule,
    WeeklySchedule,
    default_weekly_schedule,
)
from reservation_engine.service import BookingService
from reservation_engine.storage.catalog import InMemoryCatalog, ProviderRecord, ServiceRecord
from reservation_engine.storage.repository import InMemoryBookingRepository
from reservation_engine.utils import combine_local, resolve_timezone

# Friday morning; the Monday below is three days ahead.
NOW = datetime(2026, 2, 27, 8, 0, tzinfo=timezone.utc)
FRIDAY = date(2026, 2, 27)
SATURDAY = date(2026, 2, 28)
MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)

PROVIDER_ID = "prov-1"
OTHER_PROVIDER_ID = "prov-2"
SERVICE_ID = "svc-1"


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def resolver():
    return AvailabilityResolver()


@pytest.fixture
def schedule():
    return make_schedule()


@pytest.fixture
def repository():
    return InMemoryBookingRepository()


@pytest.fixture
def publisher():
    return EventPublisher()


@pytest.fixture
def refund_engine():
    return RefundPolicyEngine()


@pytest.fixture
def lifecycle(repository, publisher, clock):
    return BookingLifecycle(repository, publisher, clock=clock)


@pytest.fixture
def catalog():
    return make_catalog()


@pytest.fixture
def service(catalog, clock):
    return BookingService(catalog=catalog, clock=clock)


def make_schedule(
    provider_id: str = PROVIDER_ID,
    weekly: Optional[WeeklySchedule] = None,
    exceptions: Optional[list[DateException]] = None,
    blocked_periods: Optional[list[BlockedPeriod]] = None,
    timezone: str = "UTC",
    max_advance_booking_days: Optional[int] = None,
) -> ProviderSchedule:
    """Helper to create a ProviderSchedule open Monday to Friday 09:00-17:00."""
    return ProviderSchedule(
        provider_id=provider_id,
        weekly=weekly or default_weekly_schedule(),
        exceptions=exceptions or [],
        blocked_periods=blocked_periods or [],
        timezone=timezone,
        max_advance_booking_days=max_advance_booking_days,
    )


def make_pricing(total: Decimal = Decimal("118.00")) -> Pricing:
    """Helper to create a Pricing whose total is ``total`` (no tax, no discounts)."""
    return Pricing(
        base_price=total,
        subtotal=total,
        tax=Decimal("0"),
        total_amount=total,
        currency="AED",
    )


def make_booking(
    status: BookingStatus = BookingStatus.PENDING,
    day: date = MONDAY,
    start: int = 10 * 60,
    duration: int = 120,
    provider_id: str = PROVIDER_ID,
    booking_number: str = "RZ-20260227-001",
    total: Decimal = Decimal("118.00"),
    refund_percentage: int = 100,
    cancellation_fee: Decimal = Decimal("0"),
    timezone: str = "UTC",
    version: int = 0,
) -> Booking:
    """Helper to create a Booking with a consistent status history."""
    history = [StatusHistoryEntry(status=BookingStatus.PENDING, timestamp=NOW, actor=Actor.CUSTOMER)]
    if status != BookingStatus.PENDING:
        history.append(StatusHistoryEntry(status=status, timestamp=NOW, actor=Actor.PROVIDER))
    start_at = combine_local(day, start, resolve_timezone(timezone))
    return Booking(
        booking_number=booking_number,
        version=version,
        customer_ref="cust-1",
        provider_ref=provider_id,
        service_ref=SERVICE_ID,
        scheduled_date=day,
        scheduled_start_minute=start,
        duration_minutes=duration,
        timezone=timezone,
        status=status,
        status_history=history,
        pricing=make_pricing(total),
        cancellation_policy=CancellationPolicy(
            allowed_until=start_at - timedelta(hours=24),
            refund_percentage=refund_percentage,
            cancellation_fee=cancellation_fee,
        ),
        created_at=NOW,
        updated_at=NOW,
    )


def make_catalog(schedule: Optional[ProviderSchedule] = None) -> InMemoryCatalog:
    """Helper to create a catalog with one provider, one 2h service and a schedule."""
    catalog = InMemoryCatalog()
    catalog.add_provider(ProviderRecord(id=PROVIDER_ID, business_name="Glow Studio"))
    catalog.add_provider(ProviderRecord(id=OTHER_PROVIDER_ID, business_name="Tenzz"))
    catalog.add_service(ServiceRecord(
        id=SERVICE_ID,
        provider_id=PROVIDER_ID,
        name="Signature Facial",
        price=Decimal("100.00"),
        currency="AED",
        duration_minutes=120,
    ))
    catalog.add_service(ServiceRecord(
        id="svc-2",
        provider_id=OTHER_PROVIDER_ID,
        name="Tennis Lesson",
        price=Decimal("50.00"),
        currency="AED",
        duration_minutes=60,
    ))
    catalog.set_schedule(schedule or make_schedule())
    catalog.set_schedule(make_schedule(provider_id=OTHER_PROVIDER_ID))
    return catalog


def make_request(**overrides) -> dict:
    """Helper to create a booking request payload for Monday 10:00."""
    request = {
        "service_id": SERVICE_ID,
        "provider_id": PROVIDER_ID,
        "customer_id": "cust-1",
        "scheduled_date": MONDAY.isoformat(),
        "scheduled_time": "10:00",
        "customer_info": {"first_name": "Amira", "email": "amira@example.com"},
    }
    request.update(overrides)
    return request
