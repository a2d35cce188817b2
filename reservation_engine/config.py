"""
Centralized configuration with environment variable overrides.

All scheduling windows, refund thresholds, and locking limits are
configurable here. Nothing is hardcoded in resolver or lifecycle logic.
"""

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_decimal(env_var: str, default: str) -> Decimal:
    """Parse a Decimal from an env var; money never goes through float."""
    raw = os.getenv(env_var, default)
    try:
        return Decimal(raw)
    except (InvalidOperation, TypeError):
        raise ValueError(
            f"Invalid decimal for {env_var}: {raw!r}"
        ) from None


def _csv(env_var: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(env_var, default)
    return tuple(item.strip().upper() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class SchedulingConfig:
    """Availability resolution windows."""

    same_day_buffer_minutes: int = _safe_int("SAME_DAY_BUFFER_MINUTES", "60")
    slot_step_minutes: int = _safe_int("SLOT_STEP_MINUTES", "30")
    min_duration_minutes: int = _safe_int("MIN_DURATION_MINUTES", "15")
    max_duration_minutes: int = _safe_int("MAX_DURATION_MINUTES", "480")
    max_advance_booking_days: int = _safe_int("MAX_ADVANCE_BOOKING_DAYS", "30")
    default_timezone: str = os.getenv("DEFAULT_TIMEZONE", "UTC")


@dataclass(frozen=True)
class PolicyConfig:
    """Cancellation, refund and pricing policy defaults."""

    cancellation_window_hours: int = _safe_int("CANCELLATION_WINDOW_HOURS", "24")
    default_refund_percentage: int = _safe_int("DEFAULT_REFUND_PERCENTAGE", "100")
    default_cancellation_fee: Decimal = _safe_decimal("DEFAULT_CANCELLATION_FEE", "0")
    no_refund_hours: int = _safe_int("NO_REFUND_HOURS", "2")
    reduced_refund_hours: int = _safe_int("REDUCED_REFUND_HOURS", "24")
    late_penalty_points: int = _safe_int("LATE_PENALTY_POINTS", "50")
    tax_rate: Decimal = _safe_decimal("TAX_RATE", "0.18")
    default_currency: str = os.getenv("DEFAULT_CURRENCY", "AED").upper()
    supported_currencies: tuple[str, ...] = _csv(
        "SUPPORTED_CURRENCIES", "AED,USD,INR,EUR,GBP"
    )


@dataclass(frozen=True)
class BookingNumberConfig:
    """Human-readable booking reference settings."""

    default_prefix: str = os.getenv("BOOKING_NUMBER_PREFIX", "RZ").upper()


@dataclass(frozen=True)
class ConcurrencyConfig:
    """Limits for the per provider-day critical section."""

    lock_timeout_seconds: float = _safe_float("RESERVATION_LOCK_TIMEOUT", "5.0")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    booking_number: BookingNumberConfig = field(default_factory=BookingNumberConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "reservation-engine")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    scheduling = config.scheduling
    policy = config.policy

    if scheduling.same_day_buffer_minutes < 0:
        raise ValueError(
            f"SAME_DAY_BUFFER_MINUTES must be >= 0, got {scheduling.same_day_buffer_minutes}"
        )
    if scheduling.slot_step_minutes < 1:
        raise ValueError(
            f"SLOT_STEP_MINUTES must be >= 1, got {scheduling.slot_step_minutes}"
        )
    if scheduling.min_duration_minutes < 1:
        raise ValueError(
            f"MIN_DURATION_MINUTES must be >= 1, got {scheduling.min_duration_minutes}"
        )
    if not scheduling.min_duration_minutes <= scheduling.max_duration_minutes <= 1440:
        raise ValueError(
            "MAX_DURATION_MINUTES must be between MIN_DURATION_MINUTES and 1440, "
            f"got {scheduling.max_duration_minutes}"
        )
    if scheduling.max_advance_booking_days < 0:
        raise ValueError(
            f"MAX_ADVANCE_BOOKING_DAYS must be >= 0, got {scheduling.max_advance_booking_days}"
        )

    if not 0 <= policy.default_refund_percentage <= 100:
        raise ValueError(
            "DEFAULT_REFUND_PERCENTAGE must be between 0 and 100, "
            f"got {policy.default_refund_percentage}"
        )
    if policy.default_cancellation_fee < 0:
        raise ValueError(
            f"DEFAULT_CANCELLATION_FEE must be >= 0, got {policy.default_cancellation_fee}"
        )
    if not 0 <= policy.no_refund_hours <= policy.reduced_refund_hours:
        raise ValueError(
            "NO_REFUND_HOURS must be between 0 and REDUCED_REFUND_HOURS, "
            f"got {policy.no_refund_hours}"
        )
    if not 0 <= policy.late_penalty_points <= 100:
        raise ValueError(
            f"LATE_PENALTY_POINTS must be between 0 and 100, got {policy.late_penalty_points}"
        )
    if policy.cancellation_window_hours < 0:
        raise ValueError(
            f"CANCELLATION_WINDOW_HOURS must be >= 0, got {policy.cancellation_window_hours}"
        )
    if not Decimal("0") <= policy.tax_rate < Decimal("1"):
        raise ValueError(f"TAX_RATE must be in [0, 1), got {policy.tax_rate}")
    if policy.default_currency not in policy.supported_currencies:
        raise ValueError(
            f"DEFAULT_CURRENCY {policy.default_currency!r} is not in SUPPORTED_CURRENCIES"
        )

    prefix = config.booking_number.default_prefix
    if len(prefix) != 2 or not prefix.isalnum():
        raise ValueError(f"BOOKING_NUMBER_PREFIX must be 2 alphanumerics, got {prefix!r}")

    if config.concurrency.lock_timeout_seconds <= 0:
        raise ValueError(
            "RESERVATION_LOCK_TIMEOUT must be > 0, "
            f"got {config.concurrency.lock_timeout_seconds}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()
