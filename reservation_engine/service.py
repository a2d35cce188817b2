"""
Booking service: the inbound operations the HTTP layer calls.

Wires the catalog, repository, coordinator and lifecycle together.
Creation returns a ``ReservationResult`` for every expected failure
(bad input, unknown service or provider, unavailable slot, conflict).
Status changes raise ``ReservationError`` subclasses, since an illegal
change is a caller bug rather than a scheduling outcome.

Role authorization is the caller's job; ``actor`` records who acted.

Events queue on ``publisher`` until ``dispatch_events`` runs. The outbox is
unbounded, so a deployment must call it (from a worker loop or after each
request) or attach its own ``OutboxDispatcher`` to the publisher.
"""

import logging
from datetime import date, datetime
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from reservation_engine.availability.resolver import AvailabilityResolver
from reservation_engine.config import AppConfig, settings
from reservation_engine.coordination.coordinator import (
    ReservationCoordinator,
    ReservationResult,
    ReservationStatus,
)
from reservation_engine.coordination.locks import KeyedLockTable
from reservation_engine.errors import (
    CancellationNotAllowedError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from reservation_engine.events import EventPublisher, OutboxDispatcher
from reservation_engine.lifecycle.booking_number import BookingNumberGenerator
from reservation_engine.lifecycle.predicates import can_be_cancelled, is_active
from reservation_engine.lifecycle.refund import RefundPolicyEngine
from reservation_engine.lifecycle.state_machine import BookingLifecycle
from reservation_engine.logging_context import get_request_logger, set_request_id
from reservation_engine.pricing import build_pricing
from reservation_engine.schemas.booking_schema import Actor, Booking, BookingStatus
from reservation_engine.schemas.request_schema import CreateBookingRequest, TrackingView
from reservation_engine.storage.catalog import InMemoryCatalog
from reservation_engine.storage.repository import InMemoryBookingRepository
from reservation_engine.utils import format_hhmm, utc_now


def _format_validation_errors(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "request"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


class BookingService:
    """Facade over the reservation engine for one deployment."""

    def __init__(
        self,
        catalog: Optional[InMemoryCatalog] = None,
        repository: Optional[InMemoryBookingRepository] = None,
        publisher: Optional[EventPublisher] = None,
        locks: Optional[KeyedLockTable] = None,
        config: AppConfig = settings,
        clock: Callable[[], datetime] = utc_now,
        number_generator: Optional[BookingNumberGenerator] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.catalog = catalog if catalog is not None else InMemoryCatalog()
        self.repository = repository if repository is not None else InMemoryBookingRepository()
        self.publisher = publisher if publisher is not None else EventPublisher()
        self.dispatcher = OutboxDispatcher(self.publisher)
        self.config = config
        self.clock = clock
        self.logger = logger or get_request_logger(__name__)
        self.resolver = AvailabilityResolver(config.scheduling, logger=logger)
        self.lifecycle = BookingLifecycle(
            self.repository,
            self.publisher,
            number_generator=(
                number_generator
                if number_generator is not None
                else BookingNumberGenerator(self.repository.sequence, config=config.booking_number)
            ),
            refund_engine=RefundPolicyEngine(config.policy),
            config=config.policy,
            clock=clock,
            logger=logger,
        )
        self.coordinator = ReservationCoordinator(
            self.repository,
            self.lifecycle,
            self.catalog,
            resolver=self.resolver,
            locks=locks,
            config=config,
            clock=clock,
            logger=logger,
        )

    # --- Creation ---

    def create_booking(
        self,
        request: Union[CreateBookingRequest, dict[str, Any]],
        request_id: Optional[str] = None,
    ) -> ReservationResult:
        """Validate, price and reserve a new booking."""
        set_request_id(request_id)
        if not isinstance(request, CreateBookingRequest):
            try:
                request = CreateBookingRequest.model_validate(request)
            except PydanticValidationError as exc:
                message = _format_validation_errors(exc)
                self.logger.info("Rejected booking request: %s", message)
                return ReservationResult(
                    status=ReservationStatus.VALIDATION_ERROR,
                    reason_code=ValidationError.__name__,
                    message=message,
                )

        service = self.catalog.find_service(request.service_id)
        if service is None or not service.is_active:
            return ReservationResult(
                status=ReservationStatus.NOT_FOUND,
                reason_code=NotFoundError.__name__,
                message=f"Service '{request.service_id}' not found or inactive",
            )
        if self.catalog.find_provider(request.provider_id) is None:
            return ReservationResult(
                status=ReservationStatus.NOT_FOUND,
                reason_code=NotFoundError.__name__,
                message=f"Provider '{request.provider_id}' not found",
            )
        if service.provider_id != request.provider_id:
            return ReservationResult(
                status=ReservationStatus.VALIDATION_ERROR,
                reason_code=ValidationError.__name__,
                message="Service does not belong to this provider",
            )

        try:
            pricing = build_pricing(
                service.price,
                request.add_ons,
                tax_rate=self.config.policy.tax_rate,
                currency=service.currency,
                supported_currencies=self.config.policy.supported_currencies,
            )
        except ValidationError as exc:
            return ReservationResult(
                status=ReservationStatus.VALIDATION_ERROR,
                reason_code=exc.code,
                message=exc.message,
            )

        return self.coordinator.reserve(
            request.provider_id,
            request.service_id,
            request.scheduled_date,
            request.start_minute,
            service.duration_minutes,
            request.customer_info,
            pricing,
            customer_id=request.customer_id,
            location=request.location,
            payment_method=request.payment_method.value,
        )

    # --- Status changes ---

    def accept(self, booking_id: str, actor: Actor = Actor.PROVIDER) -> Booking:
        booking = self.repository.get(booking_id)
        return self.lifecycle.transition(
            booking, BookingStatus.CONFIRMED, actor, reason="Accepted by provider"
        )

    def reject(self, booking_id: str, reason: str, actor: Actor = Actor.PROVIDER) -> Booking:
        """Decline a pending booking. The customer is refunded in full."""
        booking = self.repository.get(booking_id)
        if booking.status != BookingStatus.PENDING:
            raise InvalidStateTransition(
                booking.status.value,
                BookingStatus.CANCELLED.value,
                [s.value for s in self.lifecycle.allowed_targets(booking.status)],
            )
        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required")
        cancellation = self.lifecycle.build_cancellation(booking, actor, reason, full_refund=True)
        return self.lifecycle.transition(
            booking,
            BookingStatus.CANCELLED,
            actor,
            reason=reason,
            cancellation=cancellation,
            rejection=True,
        )

    def start(self, booking_id: str, actor: Actor = Actor.PROVIDER) -> Booking:
        booking = self.repository.get(booking_id)
        return self.lifecycle.transition(
            booking, BookingStatus.IN_PROGRESS, actor, reason="Service started"
        )

    def complete(
        self,
        booking_id: str,
        actor: Actor = Actor.PROVIDER,
        actual_duration: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        booking = self.repository.get(booking_id)
        return self.lifecycle.transition(
            booking,
            BookingStatus.COMPLETED,
            actor,
            reason="Service completed",
            notes=notes,
            actual_duration_minutes=actual_duration,
        )

    def cancel(self, booking_id: str, actor: Actor, reason: str) -> Booking:
        """
        Cancel an active booking and record the refund owed.

        Raises:
            CancellationNotAllowedError: If a customer tries to cancel a
                booking that is already in progress.
            InvalidStateTransition: If the booking is already terminal.
        """
        booking = self.repository.get(booking_id)
        if not reason or not reason.strip():
            raise ValidationError("A cancellation reason is required")
        if actor == Actor.CUSTOMER and booking.status == BookingStatus.IN_PROGRESS:
            raise CancellationNotAllowedError(
                "A booking that is in progress cannot be cancelled by the customer",
                details={"booking_number": booking.booking_number,
                         "status": booking.status.value},
            )
        if not self.lifecycle.can_transition(booking.status, BookingStatus.CANCELLED):
            raise InvalidStateTransition(
                booking.status.value,
                BookingStatus.CANCELLED.value,
                [s.value for s in self.lifecycle.allowed_targets(booking.status)],
            )

        now = self.clock()
        if is_active(booking) and not can_be_cancelled(booking, now):
            self.logger.info(
                "Booking %s cancelled after the free cancellation deadline",
                booking.booking_number,
            )
        cancellation = self.lifecycle.build_cancellation(booking, actor, reason, now)
        return self.lifecycle.transition(
            booking, BookingStatus.CANCELLED, actor, reason=reason, cancellation=cancellation
        )

    # --- Messages ---

    def add_message(self, booking_id: str, sender: Actor, text: str) -> Booking:
        booking = self.repository.get(booking_id)
        return self.lifecycle.add_message(booking, sender, text)

    def mark_messages_read(self, booking_id: str, reader: Actor) -> Booking:
        booking = self.repository.get(booking_id)
        return self.lifecycle.mark_messages_read(booking, reader)

    # --- Events ---

    def dispatch_events(self, max_events: Optional[int] = None) -> int:
        """Deliver queued events to subscribers of ``self.dispatcher``."""
        return self.dispatcher.dispatch_pending(max_events)

    # --- Reads ---

    def get_booking(self, booking_id: str) -> Booking:
        return self.repository.get(booking_id)

    def track(self, booking_number: str) -> TrackingView:
        """Public status lookup by booking number. Carries no customer contact data."""
        booking = self.repository.get_by_number(booking_number)
        return TrackingView(
            booking_number=booking.booking_number,
            status=booking.status,
            status_history=booking.status_history,
            scheduled_date=booking.scheduled_date,
            scheduled_time=booking.scheduled_time,
            total_amount=booking.pricing.total_amount,
            currency=booking.pricing.currency,
        )

    def available_times(
        self, provider_id: str, day: date, duration_minutes: int
    ) -> list[str]:
        """Free ``HH:MM`` start times for a provider on ``day``."""
        schedule = self.catalog.get_schedule(provider_id)
        if schedule is None:
            raise NotFoundError("schedule", provider_id)
        bookings = self.repository.list_for_provider_day(provider_id, day)
        starts = self.resolver.list_available_starts(
            schedule, bookings, day, duration_minutes, self.clock()
        )
        return [format_hhmm(start) for start in starts]
