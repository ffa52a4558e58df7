"""
In-process serialization of bookings per (provider, date)

The database row lock on provider_day_locks covers multiple workers; this
registry keeps threads inside one worker from interleaving on SQLite and
bounds how long a request waits before it is reported as a conflict.
Entries live only while some request holds or waits on them.
"""

import logging
from contextlib import contextmanager
from datetime import date
from threading import Lock

from ...config import BOOKING_LOCK_TIMEOUT
from .errors import Conflict

logger = logging.getLogger(__name__)


class _DayLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = Lock()
        self.users = 0


class ProviderDayLocks:
    """Registry of one lock per provider-day"""

    def __init__(self, timeout: float = BOOKING_LOCK_TIMEOUT):
        self.timeout = timeout
        self._locks: dict[tuple[str, date], _DayLock] = {}
        self._registry_lock = Lock()

    def _checkout(self, key: tuple[str, date]) -> _DayLock:
        with self._registry_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _DayLock()
            entry.users += 1
            return entry

    def _checkin(self, key: tuple[str, date], entry: _DayLock) -> None:
        with self._registry_lock:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    def active(self) -> int:
        """Provider-days currently held or waited on"""
        with self._registry_lock:
            return len(self._locks)

    @contextmanager
    def hold(self, provider_id: str, day: date):
        key = (provider_id, day)
        entry = self._checkout(key)
        try:
            if not entry.lock.acquire(timeout=self.timeout):
                logger.warning(f"⏱️ Timed out waiting for booking lock {provider_id}/{day}")
                raise Conflict(
                    "Another booking for this provider and date is still in progress",
                    hint="Retry with a fresh read of the schedule",
                )
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)


# Shared by every orchestrator in this process
booking_locks = ProviderDayLocks()
