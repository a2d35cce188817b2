"""
Refund computation for cancelled bookings.

The policy percentage is reduced by how close the cancellation is to the
scheduled start:

    under no_refund_hours (2h)        -> 0%
    under reduced_refund_hours (24h)  -> policy% - late_penalty_points (50), floor 0
    otherwise                         -> policy%

The cancellation fee is subtracted after the percentage is applied and the
result is floored at zero. All arithmetic is Decimal, rounded half-up to
the currency minor unit.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from reservation_engine.config import PolicyConfig, settings
from reservation_engine.errors import RefundCalculationError
from reservation_engine.lifecycle.predicates import time_until_service
from reservation_engine.schemas.booking_schema import Booking, CancellationPolicy
from reservation_engine.utils import quantize_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class RefundPolicyEngine:
    """Pure, deterministic refund calculator."""

    def __init__(self, config: PolicyConfig = settings.policy) -> None:
        self.config = config

    def effective_percentage(self, refund_percentage: int, time_until: timedelta) -> int:
        """Policy percentage after the timing reduction."""
        if time_until < timedelta(hours=self.config.no_refund_hours):
            return 0
        if time_until < timedelta(hours=self.config.reduced_refund_hours):
            return max(0, refund_percentage - self.config.late_penalty_points)
        return refund_percentage

    def calculate_refund(self, booking: Booking, now: datetime) -> Decimal:
        """
        Refund owed if ``booking`` is cancelled at ``now``.

        Raises:
            RefundCalculationError: If the result falls outside [0, totalAmount].
        """
        policy = booking.cancellation_policy
        total = booking.pricing.total_amount
        pct = self.effective_percentage(
            policy.refund_percentage, time_until_service(booking, now)
        )

        refund = total * Decimal(pct) / HUNDRED - policy.cancellation_fee
        refund = quantize_money(max(ZERO, refund))

        if not ZERO <= refund <= total:
            raise RefundCalculationError(
                f"Refund {refund} outside [0, {total}] for booking {booking.booking_number}",
                details={"booking_number": booking.booking_number, "percentage": pct},
            )
        logger.debug(
            "Refund for %s: %s %s (%d%%)",
            booking.booking_number, refund, booking.pricing.currency, pct,
        )
        return refund

    def full_refund(self, booking: Booking) -> Decimal:
        """Refund for cancellations the customer did not cause."""
        return quantize_money(booking.pricing.total_amount)

    def default_policy(
        self, booking_start: datetime, refund_percentage: Optional[int] = None
    ) -> CancellationPolicy:
        """Policy attached at creation: free cancellation until the window opens."""
        return CancellationPolicy(
            allowed_until=booking_start - timedelta(hours=self.config.cancellation_window_hours),
            refund_percentage=(
                self.config.default_refund_percentage
                if refund_percentage is None
                else refund_percentage
            ),
            cancellation_fee=self.config.default_cancellation_fee,
        )

