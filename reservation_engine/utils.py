"""Shared utilities used across the reservation engine."""

import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

MINUTES_PER_DAY = 24 * 60
CENT = Decimal("0.01")

_HHMM = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> int:
    """Convert an ``HH:MM`` wall-clock string into minutes since midnight.

    Examples:
        >>> parse_hhmm("09:30")
        570
        >>> parse_hhmm("7:05")
        425
    """
    match = _HHMM.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time format {value!r}. Use HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_hhmm(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``."""
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f"Minute offset out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open interval overlap: ``[a, a_end)`` against ``[b, b_end)``."""
    return start_a < end_b and end_a > start_b


def quantize_money(amount: Decimal) -> Decimal:
    """Round a monetary amount to the minor unit, half-up."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def resolve_timezone(name: Optional[str]) -> tzinfo:
    return ZoneInfo(name or "UTC")


def validate_timezone(name: str) -> str:
    """Return ``name`` if it is a known IANA zone, else raise ``ValueError``."""
    try:
        resolve_timezone(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        raise ValueError(f"Unknown timezone '{name}'") from None
    return name


def local_now(now: datetime, tz: tzinfo) -> datetime:
    """Express ``now`` in the provider's timezone; naive values are taken as local."""
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def combine_local(day: date, minute: int, tz: tzinfo) -> datetime:
    """Aware datetime for a minute offset on a calendar day in ``tz``."""
    return datetime.combine(day, time(0, 0), tzinfo=tz) + timedelta(minutes=minute)


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("050 123 4567")
        '0501234567'
        >>> normalize_phone("+971 (50) 123-4567")
        '+971501234567'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)
