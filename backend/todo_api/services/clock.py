"""
Time source used by the feature engine and the recurrence scheduler.

Everything that compares against "now" takes a Clock so tests can pin time.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a timestamp to an aware UTC datetime.

    Naive values are treated as UTC (SQLite drops tzinfo on DateTime(timezone=True)).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Clock(ABC):
    """Abstract time source."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        pass


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock frozen at a given instant; ``advance`` moves it forward."""

    def __init__(self, current: datetime):
        self._current = ensure_utc(current)

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        self._current = ensure_utc(current)

    def advance(self, **kwargs) -> datetime:
        self._current = self._current + timedelta(**kwargs)
        return self._current


system_clock = SystemClock()
