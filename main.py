"""
Reservation engine console demo.

Runs the reservation engine against an in-memory catalog. No network, no
database. Useful for walking through the lifecycle and for inspecting
what a provider's day looks like.

Usage:
    python main.py demo
    python main.py slots 2026-03-02 --duration 60
"""

import argparse
import sys
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from reservation_engine.config import settings
from reservation_engine.events import (
    BookingCompleted,
    BookingCreated,
    BookingStatusChanged,
    MessageAdded,
    serialize_event,
)
from reservation_engine.errors import ReservationError
from reservation_engine.schemas.booking_schema import Actor
from reservation_engine.schemas.schedule_schema import ProviderSchedule, default_weekly_schedule
from reservation_engine.service import BookingService
from reservation_engine.storage.catalog import InMemoryCatalog, ProviderRecord, ServiceRecord

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

PROVIDER_ID = "prov-glow"
SERVICE_ID = "svc-facial"


def step(text: str) -> None:
    print(f"\n{BLUE}{BOLD}== {text}{RESET}")


def ok(text: str) -> None:
    print(f"{GREEN}  {text}{RESET}")


def refused(text: str) -> None:
    print(f"{YELLOW}  {text}{RESET}")


def system_log(text: str) -> None:
    print(f"{DIM}  >> {text}{RESET}")


def next_weekday(start: date, weekday: int) -> date:
    """First date strictly after ``start`` falling on ``weekday`` (Monday is 0)."""
    days_ahead = (weekday - start.weekday()) % 7 or 7
    return start + timedelta(days=days_ahead)


def build_catalog() -> InMemoryCatalog:
    """Demo provider open Monday to Friday 09:00-17:00 with one service."""
    catalog = InMemoryCatalog()
    catalog.add_provider(ProviderRecord(id=PROVIDER_ID, business_name="Glow Studio"))
    catalog.add_service(ServiceRecord(
        id=SERVICE_ID,
        provider_id=PROVIDER_ID,
        name="Signature Facial",
        price=Decimal("100.00"),
        currency=settings.policy.default_currency,
        duration_minutes=120,
    ))
    catalog.set_schedule(ProviderSchedule(
        provider_id=PROVIDER_ID,
        weekly=default_weekly_schedule(),
        timezone=settings.scheduling.default_timezone,
    ))
    return catalog


def run_demo() -> int:
    service = BookingService(catalog=build_catalog())
    for event_type in (BookingCreated, BookingStatusChanged, BookingCompleted, MessageAdded):
        service.dispatcher.subscribe(event_type, lambda e: system_log(f"event {serialize_event(e)}"))

    monday = next_weekday(datetime.now(timezone.utc).date(), 0)
    request = {
        "service_id": SERVICE_ID,
        "provider_id": PROVIDER_ID,
        "scheduled_date": monday.isoformat(),
        "scheduled_time": "10:00",
        "customer_info": {"first_name": "Amira", "email": "amira@example.com"},
    }

    step(f"Reserve {monday.isoformat()} 10:00 for 120 minutes")
    first = service.create_booking(request)
    if not first.ok:
        refused(f"{first.status.value}: {first.message}")
        return 1
    booking = first.booking
    ok(f"{booking.booking_number} {booking.status.value}, "
       f"total {booking.pricing.total_amount} {booking.pricing.currency}")

    step("Second customer asks for 11:00 on the same day")
    second = service.create_booking({**request, "scheduled_time": "11:00"})
    refused(f"{second.status.value} ({second.reason_code}): {second.message}")

    step("Free start times for a 2 hour appointment")
    ok(", ".join(service.available_times(PROVIDER_ID, monday, 120)) or "none")

    step("Provider accepts, starts and completes")
    booking = service.accept(booking.id)
    ok(f"accepted at {booking.provider_response.accepted_at:%H:%M:%S}")
    booking = service.add_message(booking.id, Actor.PROVIDER, "On my way!")
    booking = service.start(booking.id)
    booking = service.complete(booking.id, actual_duration=110)
    ok(f"{booking.booking_number} {booking.status.value}")

    step("Cancelling a completed booking")
    try:
        service.cancel(booking.id, Actor.CUSTOMER, "Changed my mind")
    except ReservationError as exc:
        refused(f"{exc.code}: {exc.message}")

    step("Public tracking")
    view = service.track(booking.booking_number)
    ok(" -> ".join(entry.status.value for entry in view.status_history))

    step("Delivering queued events")
    delivered = service.dispatch_events()
    ok(f"{delivered} events processed, {service.dispatcher.failed} handler failures")
    return 0


def run_slots(day: date, duration: int) -> int:
    service = BookingService(catalog=build_catalog())
    try:
        times = service.available_times(PROVIDER_ID, day, duration)
    except ReservationError as exc:
        print(f"{RED}{exc.message}{RESET}")
        return 1
    step(f"{day.isoformat()} ({day.strftime('%A')}), {duration} minutes")
    if times:
        ok(", ".join(times))
    else:
        refused("No free start times")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Reservation engine demo")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("demo", help="Walk through a booking lifecycle")
    slots = sub.add_parser("slots", help="List free start times for a date")
    slots.add_argument("date", type=date.fromisoformat, help="YYYY-MM-DD")
    slots.add_argument("--duration", type=int, default=60, help="Minutes (default 60)")
    args = parser.parse_args(argv)

    if args.command == "demo":
        return run_demo()
    return run_slots(args.date, args.duration)


if __name__ == "__main__":
    sys.exit(main())
