from reservation_engine.storage.catalog import InMemoryCatalog, ProviderRecord, ServiceRecord
from reservation_engine.storage.repository import BookingRepository, InMemoryBookingRepository
from reservation_engine.storage.sequence import DailySequence

__all__ = [
    "BookingRepository",
    "DailySequence",
    "InMemoryBookingRepository",
    "InMemoryCatalog",
    "ProviderRecord",
    "ServiceRecord",
]
