from __future__ import annotations
import time
from typing import Protocol


class Clock(Protocol):
    def now_ms(self) -> float: ...


class SystemClock:
    """Wall clock in epoch milliseconds."""

    def now_ms(self) -> float:
        return time.time() * 1000.0


class ManualClock:
    """Clock advanced by hand; used to drive timers deterministically."""

    def __init__(self, start_ms: float = 0.0):
        self._now = float(start_ms)

    def now_ms(self) -> float:
        return self._now

    def advance(self, ms: float) -> float:
        self._now += float(ms)
        return self._now

    def advance_s(self, seconds: float) -> float:
        return self.advance(seconds * 1000.0)

    def set(self, ms: float) -> None:
        self._now = float(ms)
