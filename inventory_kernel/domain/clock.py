"""
Clock -- injectable source of the current time.

Services and processors take a Clock instead of calling ``datetime.now()``,
so every ``created_at`` on a movement, order or receipt comes from one
place and tests can pin it.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Returns timezone-aware datetimes."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.  ``now()`` is constant until ``advance()``.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        if self._current.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start time")

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float = 1) -> datetime:
        """Move forward and return the new time."""
        self._current += timedelta(seconds=seconds)
        return self._current
