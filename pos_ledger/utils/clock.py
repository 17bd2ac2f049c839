"""Injectable clocks so due dates and timestamps are deterministic in tests."""
from datetime import datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time (naive local datetime, like the stored timestamps)."""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock:
    """Clock frozen at a given instant; advance() moves it forward."""

    def __init__(self, instant: datetime):
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def advance(self, **delta) -> datetime:
        self.instant = self.instant + timedelta(**delta)
        return self.instant
