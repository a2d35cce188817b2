"""
Per-day counters for booking numbers.

Lives with the booking store so every writer sharing a store also shares
the counter, the way a counters collection would in the database.
"""

import threading
from datetime import date
from typing import Optional


class DailySequence:
    """Monotonic per-day counter. ``next`` is atomic across threads."""

    def __init__(self, issued: Optional[dict[date, int]] = None) -> None:
        self._lock = threading.Lock()
        self._issued: dict[date, int] = dict(issued or {})

    def next(self, day: date) -> int:
        with self._lock:
            value = self._issued.get(day, 0) + 1
            self._issued[day] = value
            return value

    def current(self, day: date) -> int:
        with self._lock:
            return self._issued.get(day, 0)

    def clear(self) -> None:
        with self._lock:
            self._issued.clear()
