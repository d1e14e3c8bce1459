from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """UTC wall clock used for grant, ledger and message timestamps."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


@dataclass
class SteppingClock:
    """Deterministic clock: each ``now()`` returns ``start`` plus ``step`` more than the last."""

    start: datetime = field(default_factory=lambda: datetime(2024, 1, 1, tzinfo=timezone.utc))
    step: timedelta = timedelta(seconds=1)
    ticks: int = 0

    def now(self) -> datetime:
        current = self.start + self.step * self.ticks
        self.ticks += 1
        return current


system_clock = SystemClock()
