"""
Injectable time source.

Services, selectors and batch jobs ask a Clock for the time instead of
calling ``datetime.now()``: days overdue, dividend run dates and audit
timestamps all come from it, so tests can pin "today".
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timezone


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware current time."""

    def today(self) -> date:
        """UTC calendar date of ``now()``."""
        return self.now().astimezone(timezone.utc).date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock frozen at a chosen instant until moved with ``set_date``.

    Defaults to 2025-01-01 12:00 UTC.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._now = fixed_time or datetime(2025, 1, 1, 12, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set_date(self, day: date) -> None:
        """Move to noon UTC on ``day``."""
        self._now = datetime.combine(day, time(12), tzinfo=timezone.utc)
