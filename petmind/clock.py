"""Time sources. All petmind timestamps are milliseconds as floats."""

from __future__ import annotations

import time


class SystemClock:
    """Wall-clock time in milliseconds."""

    def now(self) -> float:
        return time.time() * 1000.0


class LogicalClock:
    """Manually advanced clock used by tests and simulations."""

    def __init__(self, start: float = 0.0):
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, ms: float) -> float:
        if ms < 0:
            raise ValueError("cannot move a logical clock backwards")
        self._now += ms
        return self._now

    def set(self, ms: float) -> None:
        if ms < self._now:
            raise ValueError("cannot move a logical clock backwards")
        self._now = float(ms)
