"""
Human-readable booking numbers: ``<PREFIX>-<YYYYMMDD>-<SEQ>``.

The prefix comes from the provider's business-name initials. The sequence
is issued by an atomic per-day counter. Generators that write to one booking
store should share the store's counter (``repository.sequence``) so that
concurrent creations on the same day never receive the same number.

Usage:
    generator = BookingNumberGenerator()
    generator.generate("Glow Studio", date(2026, 3, 2))  # 'GS-20260302-001'
"""

import logging
from datetime import date
from typing import Optional

from reservation_engine.config import BookingNumberConfig, settings
from reservation_engine.storage.sequence import DailySequence

logger = logging.getLogger(__name__)

PREFIX_LENGTH = 2
SEQUENCE_WIDTH = 3


def derive_prefix(business_name: Optional[str], default: str) -> str:
    """Initials of the first two words, or the first two letters of a single word.

    Examples:
        >>> derive_prefix("Glow Beauty Studio", "RZ")
        'GB'
        >>> derive_prefix("Tenzz", "RZ")
        'TE'
        >>> derive_prefix(None, "RZ")
        'RZ'
    """
    if not business_name:
        return default
    words = ["".join(ch for ch in word if ch.isalnum()) for word in business_name.split()]
    words = [word for word in words if word]
    if len(words) >= 2:
        prefix = "".join(word[0] for word in words[:PREFIX_LENGTH])
    elif words:
        prefix = words[0][:PREFIX_LENGTH]
    else:
        prefix = ""
    if len(prefix) != PREFIX_LENGTH:
        return default
    return prefix.upper()


def generate_booking_number(
    initials_hint: Optional[str],
    day: date,
    sequence_number: int,
    default_prefix: str = settings.booking_number.default_prefix,
) -> str:
    """Format a booking number from a business name hint, a date and a sequence."""
    if sequence_number < 1:
        raise ValueError(f"Sequence number must be >= 1, got {sequence_number}")
    prefix = derive_prefix(initials_hint, default_prefix)
    return f"{prefix}-{day.strftime('%Y%m%d')}-{sequence_number:0{SEQUENCE_WIDTH}d}"


class BookingNumberGenerator:
    """Issues booking numbers backed by a DailySequence."""

    def __init__(
        self,
        sequence: Optional[DailySequence] = None,
        config: BookingNumberConfig = settings.booking_number,
    ) -> None:
        self.sequence = sequence if sequence is not None else DailySequence()
        self.config = config

    def generate(self, business_name: Optional[str], day: date) -> str:
        number = generate_booking_number(
            business_name, day, self.sequence.next(day), self.config.default_prefix
        )
        logger.debug("Issued booking number %s", number)
        return number
