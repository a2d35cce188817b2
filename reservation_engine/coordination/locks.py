"""
Keyed lock table for per provider-day critical sections.

Each key gets its own lock, created on first use and dropped when the last
holder or waiter leaves, so the table does not grow with every date ever
booked. Requests for different keys never wait on each other.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Hashable, Iterator

from reservation_engine.errors import LockTimeoutError

logger = logging.getLogger(__name__)


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class KeyedLockTable:
    """Mutex per key, acquired with a bounded wait."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}

    @contextmanager
    def hold(self, key: Hashable, timeout: float) -> Iterator[None]:
        """
        Hold the lock for ``key`` for the duration of the ``with`` block.

        Raises:
            LockTimeoutError: If the lock is not acquired within ``timeout`` seconds.
        """
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1

        acquired = entry.lock.acquire(timeout=timeout)
        try:
            if not acquired:
                logger.warning("Timed out after %.2fs waiting for lock %r", timeout, key)
                raise LockTimeoutError(
                    f"Another reservation for {key!r} is in progress; retry shortly",
                    details={"key": repr(key), "timeout_seconds": timeout},
                )
            yield
        finally:
            if acquired:
                entry.lock.release()
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
