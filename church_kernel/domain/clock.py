"""
Clock -- injectable time source.

Services, the workflow engine and the audit ledger take a Clock in
their constructor and never call ``datetime.now()`` themselves, so
ledger timestamps (and therefore ledger hashes) are reproducible in
tests.  SystemClock is the one place wall-clock time enters the kernel.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """``now()`` returns a timezone-aware UTC datetime."""

    @abstractmethod
    def now(self) -> datetime: ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Manually driven clock for tests.

    Time only moves on ``advance()``, ``tick()`` or ``set_time()``.  Safe
    to share between the threads of a concurrency test.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or EPOCH
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._current

    def set_time(self, time: datetime) -> None:
        with self._lock:
            self._current = time

    def advance(self, seconds: int = 1) -> None:
        with self._lock:
            self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Advance one second and return the new time."""
        with self._lock:
            self._current += timedelta(seconds=1)
            return self._current
