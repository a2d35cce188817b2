"""
Booking lifecycle state machine.

Every status change is an explicit edge in ``BookingLifecycle.TRANSITIONS``.
A change that is not in the table is rejected with the list of allowed
targets, so callers can refresh and show the current status.

    pending      -> confirmed | cancelled
    confirmed    -> in_progress | cancelled
    in_progress  -> completed | cancelled

``completed``, ``cancelled`` and ``no_show`` are terminal.

Transitions are all-or-nothing: the booking is copied, mutated and saved
against its version, and events are queued only after the save succeeds.

Usage:
    lifecycle = BookingLifecycle(repository, publisher)
    booking = lifecycle.transition(booking, BookingStatus.CONFIRMED, Actor.PROVIDER)
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

from reservation_engine.config import PolicyConfig, settings
from reservation_engine.errors import (
    DuplicateBookingNumberError,
    InvalidStateTransition,
    ValidationError,
)
from reservation_engine.events import (
    BookingCompleted,
    BookingCreated,
    BookingStatusChanged,
    EventPublisher,
    MessageAdded,
)
from reservation_engine.lifecycle.booking_number import BookingNumberGenerator
from reservation_engine.lifecycle.refund import RefundPolicyEngine
from reservation_engine.logging_context import get_request_logger
from reservation_engine.schemas.booking_schema import (
    MAX_MESSAGE_LENGTH,
    Actor,
    Booking,
    BookingStatus,
    CancellationDetails,
    CustomerInfo,
    Location,
    Message,
    Pricing,
    StatusHistoryEntry,
)
from reservation_engine.storage.repository import BookingRepository
from reservation_engine.utils import combine_local, resolve_timezone, utc_now

MAX_NUMBER_ATTEMPTS = 5


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""
    from_status: BookingStatus
    to_status: BookingStatus


class BookingLifecycle:
    """
    Applies status transitions to persisted bookings.

    The lifecycle owns every write to a booking after creation. It never
    calls notification or analytics code; it queues events on the
    publisher and returns.
    """

    TRANSITIONS: list[Transition] = [
        # --- Provider response ---
        Transition(BookingStatus.PENDING, BookingStatus.CONFIRMED),
        Transition(BookingStatus.PENDING, BookingStatus.CANCELLED),

        # --- Service day ---
        Transition(BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS),
        Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED),

        # --- Wrap-up ---
        Transition(BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED),
        Transition(BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED),
    ]

    def __init__(
        self,
        repository: BookingRepository,
        publisher: EventPublisher,
        number_generator: Optional[BookingNumberGenerator] = None,
        refund_engine: Optional[RefundPolicyEngine] = None,
        config: PolicyConfig = settings.policy,
        clock: Callable[[], datetime] = utc_now,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.repository = repository
        self.publisher = publisher
        self.number_generator = (
            number_generator
            if number_generator is not None
            else BookingNumberGenerator(sequence=repository.sequence)
        )
        self.refund_engine = (
            refund_engine if refund_engine is not None else RefundPolicyEngine(config)
        )
        self.config = config
        self.clock = clock
        self.logger = logger or get_request_logger(__name__)

    @classmethod
    def allowed_targets(cls, status: BookingStatus) -> list[BookingStatus]:
        """Return all statuses reachable in one step from ``status``."""
        return [t.to_status for t in cls.TRANSITIONS if t.from_status == status]

    @classmethod
    def can_transition(cls, current: BookingStatus, target: BookingStatus) -> bool:
        return any(
            t.from_status == current and t.to_status == target for t in cls.TRANSITIONS
        )

    def create_pending(
        self,
        *,
        provider_id: str,
        service_id: str,
        day: date,
        start_minute: int,
        duration_minutes: int,
        pricing: Pricing,
        customer_info: Optional[CustomerInfo] = None,
        customer_id: Optional[str] = None,
        business_name: Optional[str] = None,
        timezone: str = "UTC",
        location: Optional[Location] = None,
        payment_method: Optional[str] = None,
        actor: Actor = Actor.CUSTOMER,
    ) -> Booking:
        """
        Persist a new booking in ``pending`` and queue ``BookingCreated``.

        The caller is responsible for having checked availability while
        holding the provider-day lock.
        """
        now = self.clock()
        start = combine_local(day, start_minute, resolve_timezone(timezone))
        draft = Booking(
            booking_number=self.number_generator.generate(business_name, now.date()),
            customer_ref=customer_id,
            provider_ref=provider_id,
            service_ref=service_id,
            scheduled_date=day,
            scheduled_start_minute=start_minute,
            duration_minutes=duration_minutes,
            timezone=timezone,
            status=BookingStatus.PENDING,
            status_history=[
                StatusHistoryEntry(
                    status=BookingStatus.PENDING,
                    timestamp=now,
                    actor=actor,
                    reason="Booking created",
                )
            ],
            pricing=pricing,
            cancellation_policy=self.refund_engine.default_policy(start),
            customer_info=customer_info or CustomerInfo(),
            location=location,
            payment_method=payment_method,
            created_at=now,
            updated_at=now,
        )
        booking = self._add_with_fresh_number(draft, business_name, now.date())
        self.publisher.publish(BookingCreated(
            booking_id=booking.id,
            booking_number=booking.booking_number,
            provider_id=booking.provider_ref,
            customer_id=booking.customer_ref,
            scheduled_date=booking.scheduled_date,
            scheduled_time=booking.scheduled_time,
            occurred_at=now,
        ))
        self.logger.info(
            "Booking %s created for provider %s on %s at %s",
            booking.booking_number, provider_id, day.isoformat(), booking.scheduled_time,
        )
        return booking

    def _add_with_fresh_number(
        self, draft: Booking, business_name: Optional[str], issued_on: date
    ) -> Booking:
        """Insert ``draft``, drawing a new number while the one it has is taken.

        Numbers already present in the store (imported, or issued by a
        generator with its own counter) are skipped rather than surfaced.
        """
        for _ in range(MAX_NUMBER_ATTEMPTS - 1):
            try:
                return self.repository.add(draft)
            except DuplicateBookingNumberError:
                self.logger.warning(
                    "Booking number %s already issued, drawing another", draft.booking_number
                )
                draft = draft.model_copy(update={
                    "booking_number": self.number_generator.generate(business_name, issued_on),
                })
        return self.repository.add(draft)

    def transition(
        self,
        booking: Booking,
        target: BookingStatus,
        actor: Actor,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        *,
        cancellation: Optional[CancellationDetails] = None,
        actual_duration_minutes: Optional[int] = None,
        rejection: bool = False,
    ) -> Booking:
        """
        Apply one status transition and persist it.

        Args:
            booking: The caller's copy of the booking; its ``version`` is
                the version the write is checked against.
            target: Desired status.
            actor: Who is making the change.
            reason: Optional reason recorded in the history entry.
            notes: Optional free-form notes recorded in the history entry.
            cancellation: Required when ``target`` is ``cancelled``.
            actual_duration_minutes: Recorded when completing.
            rejection: Marks a provider rejection of a pending booking.

        Returns:
            The updated booking as stored.

        Raises:
            InvalidStateTransition: If the edge is not in the table.
            ValidationError: If cancellation details are missing or a
                recorded duration is not positive.
            StaleBookingError: If the booking changed since it was read.
        """
        current = booking.status
        if not self.can_transition(current, target):
            raise InvalidStateTransition(
                current.value,
                target.value,
                [s.value for s in self.allowed_targets(current)],
            )
        if target == BookingStatus.CANCELLED and cancellation is None:
            raise ValidationError(
                "Cancellation details are required to cancel a booking",
                details={"booking_number": booking.booking_number},
            )
        if actual_duration_minutes is not None and actual_duration_minutes <= 0:
            raise ValidationError(
                f"Actual duration must be positive, got {actual_duration_minutes}"
            )

        now = self.clock()
        updated = booking.model_copy(deep=True)
        updated.status = target
        updated.status_history.append(StatusHistoryEntry(
            status=target, timestamp=now, actor=actor, reason=reason, notes=notes,
        ))
        updated.updated_at = now

        if target == BookingStatus.CONFIRMED:
            updated.provider_response.accepted_at = now
        elif target == BookingStatus.IN_PROGRESS:
            updated.provider_response.arrival_time = now
        elif target == BookingStatus.COMPLETED:
            updated.completed_at = now
            updated.provider_response.completed_at = now
            if actual_duration_minutes is not None:
                updated.provider_response.actual_duration_minutes = actual_duration_minutes
        elif target == BookingStatus.CANCELLED:
            updated.cancelled_at = now
            updated.cancellation_details = cancellation
            if rejection:
                updated.provider_response.rejected_at = now
                updated.provider_response.rejection_reason = reason

        saved = self.repository.save(updated, expected_version=booking.version)

        self.publisher.publish(BookingStatusChanged(
            booking_id=saved.id,
            booking_number=saved.booking_number,
            from_status=current.value,
            to_status=target.value,
            actor=actor.value,
            occurred_at=now,
            reason=reason,
        ))
        if target == BookingStatus.COMPLETED:
            self.publisher.publish(BookingCompleted(
                booking_id=saved.id,
                booking_number=saved.booking_number,
                customer_id=saved.customer_ref,
                provider_id=saved.provider_ref,
                service_id=saved.service_ref,
                total_amount=saved.pricing.total_amount,
                currency=saved.pricing.currency,
                occurred_at=now,
            ))

        self.logger.info(
            "Booking %s: %s -> %s by %s",
            saved.booking_number, current.value, target.value, actor.value,
        )
        return saved

    def build_cancellation(
        self,
        booking: Booking,
        actor: Actor,
        reason: str,
        now: Optional[datetime] = None,
        *,
        full_refund: bool = False,
    ) -> CancellationDetails:
        """Cancellation details with the refund owed for ``actor`` cancelling now.

        Provider-initiated cancellations and rejections (``full_refund``)
        refund in full.
        """
        now = now or self.clock()
        if full_refund or actor == Actor.PROVIDER:
            refund = self.refund_engine.full_refund(booking)
        else:
            refund = self.refund_engine.calculate_refund(booking, now)
        return CancellationDetails(
            cancelled_by=actor,
            cancelled_at=now,
            reason=reason,
            refund_amount=refund,
        )

    def add_message(self, booking: Booking, sender: Actor, text: str) -> Booking:
        """Append a message to the booking thread and queue ``MessageAdded``."""
        text = (text or "").strip()
        if not text:
            raise ValidationError("Message text is required")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise ValidationError(
                f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters"
            )

        now = self.clock()
        updated = booking.model_copy(deep=True)
        message = Message(sender=sender.value, text=text, timestamp=now)
        updated.messages.append(message)
        updated.updated_at = now
        saved = self.repository.save(updated, expected_version=booking.version)

        self.publisher.publish(MessageAdded(
            booking_id=saved.id,
            booking_number=saved.booking_number,
            message_id=message.id,
            sender=message.sender,
            occurred_at=now,
        ))
        self.logger.debug("Message %s added to %s", message.id, saved.booking_number)
        return saved

    def mark_messages_read(self, booking: Booking, reader: Actor) -> Booking:
        """Mark every unread message not sent by ``reader`` as read."""
        unread = [
            i for i, m in enumerate(booking.messages)
            if not m.is_read and m.sender != reader.value
        ]
        if not unread:
            return booking

        updated = booking.model_copy(deep=True)
        for i in unread:
            updated.messages[i].is_read = True
        updated.updated_at = self.clock()
        return self.repository.save(updated, expected_version=booking.version)
