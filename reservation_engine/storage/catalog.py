"""
In-memory provider and service catalog.

In production this data is owned by the provider-management surface; the
reservation engine only reads services, provider names and schedules.
"""

import logging
import threading
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from reservation_engine.errors import NotFoundError
from reservation_engine.schemas.schedule_schema import DateException, ProviderSchedule

logger = logging.getLogger(__name__)


class ProviderRecord(BaseModel):
    id: str
    business_name: Optional[str] = None
    auto_accept_bookings: bool = False


class ServiceRecord(BaseModel):
    id: str
    provider_id: str
    name: str
    price: Decimal = Field(ge=0)
    currency: str = "AED"
    duration_minutes: int = Field(gt=0)
    is_active: bool = True


class InMemoryCatalog:
    """Providers, services and schedules keyed by id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._providers: dict[str, ProviderRecord] = {}
        self._services: dict[str, ServiceRecord] = {}
        self._schedules: dict[str, ProviderSchedule] = {}

    def add_provider(self, provider: ProviderRecord) -> None:
        with self._lock:
            self._providers[provider.id] = provider

    def add_service(self, service: ServiceRecord) -> None:
        with self._lock:
            self._services[service.id] = service

    def set_schedule(self, schedule: ProviderSchedule) -> None:
        with self._lock:
            self._schedules[schedule.provider_id] = schedule
        logger.info("Schedule updated for provider %s", schedule.provider_id)

    def add_exception(self, provider_id: str, exception: DateException) -> ProviderSchedule:
        """Record a date exception, replacing any existing one for that date."""
        with self._lock:
            schedule = self._schedules.get(provider_id)
            if schedule is None:
                raise NotFoundError("schedule", provider_id)
            updated = schedule.with_exception(exception)
            self._schedules[provider_id] = updated
            return updated

    def find_provider(self, provider_id: str) -> Optional[ProviderRecord]:
        with self._lock:
            return self._providers.get(provider_id)

    def find_service(self, service_id: str) -> Optional[ServiceRecord]:
        with self._lock:
            return self._services.get(service_id)

    def get_schedule(self, provider_id: str) -> Optional[ProviderSchedule]:
        with self._lock:
            return self._schedules.get(provider_id)
