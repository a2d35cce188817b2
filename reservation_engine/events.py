"""
Booking domain events and the in-process outbox.

The lifecycle only appends events to the outbox; it never calls email,
loyalty or analytics integrations directly. Consumers are invoked later by
``OutboxDispatcher.dispatch_pending``. A failing consumer is logged and
counted and never reaches the code that produced the event.
"""

import logging
import queue
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class Event(Protocol):
    """Protocol for event types."""

    def to_dict(self) -> dict[str, Any]:
        ...


@dataclass(frozen=True)
class BookingCreated:
    """Fired after a booking is persisted in ``pending``."""

    booking_id: str
    booking_number: str
    provider_id: str
    customer_id: Optional[str]
    scheduled_date: date
    scheduled_time: str
    occurred_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BookingStatusChanged:
    """Fired after every committed status transition."""

    booking_id: str
    booking_number: str
    from_status: str
    to_status: str
    actor: str
    occurred_at: datetime
    reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BookingCompleted:
    """Fired when a booking reaches ``completed``; feeds loyalty and analytics."""

    booking_id: str
    booking_number: str
    customer_id: Optional[str]
    provider_id: str
    service_id: str
    total_amount: Decimal
    currency: str
    occurred_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MessageAdded:
    """Fired after a message is appended to a booking thread."""

    booking_id: str
    booking_number: str
    message_id: str
    sender: str
    occurred_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def serialize_event(event: Event) -> dict[str, Any]:
    """Event payload with dates, datetimes and Decimals rendered as strings."""
    payload = event.to_dict()
    for key, value in payload.items():
        if isinstance(value, (datetime, date)):
            payload[key] = value.isoformat()
        elif isinstance(value, Decimal):
            payload[key] = str(value)
    payload["type"] = type(event).__name__
    return payload


class EventPublisher:
    """Appends events to an unbounded thread-safe outbox. Never blocks.

    Nothing is removed until a dispatcher drains the outbox, so every
    publisher needs an ``OutboxDispatcher`` that runs regularly.
    """

    def __init__(self, outbox: Optional[queue.SimpleQueue] = None) -> None:
        self._outbox: queue.SimpleQueue = outbox if outbox is not None else queue.SimpleQueue()

    def publish(self, event: Event) -> None:
        self._outbox.put_nowait(event)
        logger.debug("Queued event %s", type(event).__name__)

    def drain(self, max_events: Optional[int] = None) -> list[Event]:
        """Remove and return queued events, oldest first."""
        events: list[Event] = []
        while max_events is None or len(events) < max_events:
            try:
                events.append(self._outbox.get_nowait())
            except queue.Empty:
                break
        return events

    def pending(self) -> int:
        return self._outbox.qsize()


Handler = Callable[[Any], None]


class OutboxDispatcher:
    """Delivers queued events to subscribers registered per event type."""

    def __init__(self, publisher: EventPublisher) -> None:
        self.publisher = publisher
        self._handlers: dict[type, list[Handler]] = defaultdict(list)
        self.delivered = 0
        self.failed = 0

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)
        logger.debug("Subscribed %r to %s", handler, event_type.__name__)

    def dispatch_pending(self, max_events: Optional[int] = None) -> int:
        """Deliver queued events; returns how many events were processed."""
        events = self.publisher.drain(max_events)
        for event in events:
            for handler in self._handlers.get(type(event), []):
                try:
                    handler(event)
                    self.delivered += 1
                except Exception:
                    self.failed += 1
                    logger.exception(
                        "Event handler %r failed for %s", handler, type(event).__name__
                    )
        return len(events)
