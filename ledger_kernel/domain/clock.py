"""
Clock -- injectable time source.

Services stamp ``posted_at``, ``processed_at``, default entry and
settlement dates, and report ``generated_at`` from a Clock handed to their
constructor, so the same ledger replayed under a DeterministicClock
produces the same dates.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone


class Clock(ABC):
    """
    Contract:
        ``now()`` is timezone-aware; ``today()`` is its calendar date and is
        what every "date defaults to today" parameter uses.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall-clock UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Frozen at one instant (default 2024-01-01 12:00 UTC)."""

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._fixed_time
