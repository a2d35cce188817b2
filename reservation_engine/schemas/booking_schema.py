"""Booking aggregate and its value objects."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from reservation_engine.utils import combine_local, format_hhmm, normalize_phone, resolve_timezone

PRICING_TOLERANCE = Decimal("0.01")
MAX_MESSAGE_LENGTH = 1000


class BookingStatus(str, Enum):
    """All possible states in a booking lifecycle."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


ACTIVE_STATUSES = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS}
)
TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
)


class Actor(str, Enum):
    """Who performed a status change."""
    CUSTOMER = "customer"
    PROVIDER = "provider"
    SYSTEM = "system"
    ADMIN = "admin"


class RefundStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class AddOn(BaseModel):
    name: str = Field(min_length=1)
    price: Decimal = Field(ge=0)


class Discount(BaseModel):
    type: str
    amount: Decimal = Field(ge=0)
    description: str = ""


class Pricing(BaseModel):
    """Price breakdown snapshot taken at booking time."""

    base_price: Decimal = Field(ge=0)
    add_ons: list[AddOn] = Field(default_factory=list)
    discounts: list[Discount] = Field(default_factory=list)
    subtotal: Decimal = Field(ge=0)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    total_amount: Decimal = Field(ge=0)
    currency: str = Field(min_length=3, max_length=3)

    @model_validator(mode="after")
    def _total_matches_breakdown(self) -> "Pricing":
        discounts = sum((d.amount for d in self.discounts), Decimal("0"))
        expected = self.subtotal + self.tax - discounts
        if abs(self.total_amount - expected) > PRICING_TOLERANCE:
            raise ValueError(
                f"total_amount {self.total_amount} does not equal "
                f"subtotal + tax - discounts ({expected})"
            )
        return self


class CancellationPolicy(BaseModel):
    allowed_until: datetime
    refund_percentage: int = Field(default=100, ge=0, le=100)
    cancellation_fee: Decimal = Field(default=Decimal("0"), ge=0)


class CancellationDetails(BaseModel):
    cancelled_by: Actor
    cancelled_at: datetime
    reason: str
    refund_amount: Decimal = Field(ge=0)
    refund_status: RefundStatus = RefundStatus.PENDING


class StatusHistoryEntry(BaseModel):
    status: BookingStatus
    timestamp: datetime
    actor: Actor
    reason: Optional[str] = None
    notes: Optional[str] = None


class ProviderResponse(BaseModel):
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    arrival_time: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    actual_duration_minutes: Optional[int] = None
    notes: Optional[str] = None


class Message(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    sender: str
    text: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)
    timestamp: datetime
    is_read: bool = False


class CustomerInfo(BaseModel):
    """Customer contact snapshot; every field optional for guest bookings."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = Field(default=None, pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    phone: Optional[str] = None
    special_requests: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def _normalize_phone(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        normalized = normalize_phone(value)
        if len(normalized.lstrip("+")) < 7:
            raise ValueError(f"Invalid phone number: {value!r}")
        return normalized


class Address(BaseModel):
    street: str
    city: str
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: str = "AE"


class LocationType(str, Enum):
    CUSTOMER_ADDRESS = "customer_address"
    PROVIDER_LOCATION = "provider_location"
    ONLINE = "online"


class Location(BaseModel):
    type: LocationType
    address: Optional[Address] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _address_for_home_visits(self) -> "Location":
        if self.type == LocationType.CUSTOMER_ADDRESS and self.address is None:
            raise ValueError("A customer_address location requires an address")
        return self


class Booking(BaseModel):
    """Aggregate root. Mutated only through the booking lifecycle."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    booking_number: str
    version: int = 0

    customer_ref: Optional[str] = None
    provider_ref: str
    service_ref: str

    scheduled_date: date
    scheduled_start_minute: int = Field(ge=0, lt=24 * 60)
    duration_minutes: int = Field(gt=0)
    timezone: str = "UTC"

    status: BookingStatus = BookingStatus.PENDING
    status_history: list[StatusHistoryEntry] = Field(default_factory=list)

    pricing: Pricing
    cancellation_policy: CancellationPolicy
    cancellation_details: Optional[CancellationDetails] = None

    customer_info: CustomerInfo = Field(default_factory=CustomerInfo)
    location: Optional[Location] = None
    payment_method: Optional[str] = None
    provider_response: ProviderResponse = Field(default_factory=ProviderResponse)
    messages: list[Message] = Field(default_factory=list)

    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _status_matches_history(self) -> "Booking":
        if self.status_history and self.status_history[-1].status != self.status:
            raise ValueError("Current status must equal the last status history entry")
        return self

    @property
    def end_minute(self) -> int:
        return self.scheduled_start_minute + self.duration_minutes

    @property
    def scheduled_time(self) -> str:
        return format_hhmm(self.scheduled_start_minute)

    @property
    def estimated_end_time(self) -> datetime:
        return combine_local(
            self.scheduled_date, self.end_minute, resolve_timezone(self.timezone)
        )
