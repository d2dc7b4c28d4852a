"""
Injectable time source.

Expiry windows, alert timestamps, ledger dates and staff compliance all
hinge on "now" and "today".  Services, selectors and the domain never read
the system time themselves; they are handed a Clock.  SystemClock is the
only place that touches the real time.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

_DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of the current instant; always timezone-aware UTC."""

    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        """Calendar day of ``now()``, used for expiry and compliance windows."""
        return self.now().date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Time only moves when the test moves it, so "expires in 7 days" style
    assertions stay stable across runs.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or _DEFAULT_TEST_TIME

    def now(self) -> datetime:
        return self._current

    def set_time(self, moment: datetime) -> None:
        self._current = moment

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        self._current += timedelta(days=days)
