"""
Clock -- injectable notion of "today".

Pending-reservation imports keep only check-ins after today, so the date is
an input rather than a call to ``date.today()`` buried in the engine.
SystemClock is the one place that reads the real time.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware current time."""

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Fixed time for tests.

    Usage:
        clock = DeterministicClock.on(date(2024, 3, 15))
        clock.advance_days(1)
    """

    def __init__(self, fixed_time: datetime):
        if fixed_time.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware datetime")
        self._now = fixed_time

    @classmethod
    def on(cls, day: date) -> "DeterministicClock":
        """Noon UTC on ``day``."""
        return cls(datetime(day.year, day.month, day.day, 12, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._now

    def advance_days(self, days: int = 1) -> None:
        self._now += timedelta(days=days)
