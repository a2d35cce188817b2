"""Inbound request and outbound tracking models for the booking service."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from reservation_engine.schemas.booking_schema import (
    AddOn,
    BookingStatus,
    CustomerInfo,
    Location,
    StatusHistoryEntry,
)
from reservation_engine.utils import parse_hhmm


class PaymentMethod(str, Enum):
    APPLE_PAY = "apple_pay"
    CREDIT_CARD = "credit_card"
    CASH = "cash"


class CreateBookingRequest(BaseModel):
    """Validated booking creation request from the HTTP layer."""
    service_id: str = Field(min_length=1)
    provider_id: str = Field(min_length=1)
    customer_id: Optional[str] = None
    scheduled_date: date
    scheduled_time: str
    location: Optional[Location] = None
    customer_info: CustomerInfo = Field(default_factory=CustomerInfo)
    add_ons: list[AddOn] = Field(default_factory=list)
    payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD

    @field_validator("scheduled_time")
    @classmethod
    def _valid_hhmm(cls, value: str) -> str:
        parse_hhmm(value)
        return value.strip()

    @property
    def start_minute(self) -> int:
        return parse_hhmm(self.scheduled_time)


class TrackingView(BaseModel):
    """Public, read-only projection of a booking. No customer PII."""
    booking_number: str
    status: BookingStatus
    status_history: list[StatusHistoryEntry]
    scheduled_date: date
    scheduled_time: str
    total_amount: Decimal
    currency: str

    model_config = {"frozen": True}
