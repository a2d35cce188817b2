"""
Domain exceptions for the reservation engine.

Availability and validation failures are returned as typed results by the
resolver and coordinator. The exceptions here cover the cases that must
abort an operation: illegal transitions, stale writes, missing records
and broken refund invariants.
"""

from typing import Any, Optional


class ReservationError(Exception):
    """Base exception for all reservation engine errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ReservationError):
    """Malformed or missing input the caller must correct."""


class NotFoundError(ReservationError):
    """A service, provider, schedule or booking does not exist."""

    def __init__(self, resource: str, identifier: str) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            f"{resource.capitalize()} '{identifier}' not found",
            details={"resource": resource, "id": identifier},
        )


class InvalidStateTransition(ReservationError):
    """Raised when a status change is not an edge of the lifecycle table."""

    def __init__(self, current_status: str, target_status: str, allowed: list[str]) -> None:
        self.current_status = current_status
        self.target_status = target_status
        self.allowed = allowed
        super().__init__(
            f"No valid transition from '{current_status}' to '{target_status}'. "
            f"Allowed targets: {allowed}",
            details={
                "current_status": current_status,
                "target_status": target_status,
                "allowed": allowed,
            },
        )


class CancellationNotAllowedError(ReservationError):
    """The acting party may not cancel the booking in its current status."""


class StaleBookingError(ReservationError):
    """A write was attempted against an outdated booking version; reload and retry."""

    def __init__(self, booking_id: str, expected_version: int, actual_version: int) -> None:
        self.booking_id = booking_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Booking '{booking_id}' is at version {actual_version}, "
            f"write expected {expected_version}",
            details={
                "booking_id": booking_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )


class DuplicateBookingNumberError(ReservationError):
    """A booking number was issued twice."""


class RefundCalculationError(ReservationError):
    """Refund arithmetic produced an out-of-range amount. Indicates a bug."""


class LockTimeoutError(ReservationError):
    """The provider-day critical section could not be acquired in time."""

    retryable = True
