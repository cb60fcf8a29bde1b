from __future__ import annotations
from dataclasses import dataclass
import logging

from focustimer.utils.clock import Clock, SystemClock
from focustimer.utils.timefmt import format_elapsed_ms
from .ticker import AsyncioTicker, Ticker

log = logging.getLogger(__name__)


@dataclass
class TimerState:
    running: bool = False
    paused: bool = False
    reference_start_ms: float = 0.0
    accumulated_elapsed_ms: int = 0


class StopwatchEngine:
    """Stopwatch with start / pause / resume / reset.

    Elapsed time is always now - reference_start_ms, so ticks only refresh
    accumulated_elapsed_ms and drift in the tick schedule never leaks into
    the measured time.
    States: idle -> running -> (paused <-> running) -> idle via reset().
    """

    def __init__(self, clock: Clock | None = None, ticker: Ticker | None = None):
        self.clock = clock or SystemClock()
        self.ticker = ticker or AsyncioTicker(1.0)
        self.state = TimerState()

    @property
    def running(self) -> bool:
        return self.state.running

    @property
    def paused(self) -> bool:
        return self.state.paused

    def start(self) -> None:
        st = self.state
        if st.running:
            return
        reference = self.clock.now_ms() - st.accumulated_elapsed_ms
        # a ticker that cannot start leaves the stopwatch idle
        self.ticker.start(self._tick)
        st.running = True
        st.paused = False
        st.reference_start_ms = reference
        log.info("stopwatch started at %s", self.display())

    def pause(self) -> None:
        st = self.state
        if not st.running or st.paused:
            return
        st.accumulated_elapsed_ms = self._measure()
        self.ticker.stop()
        st.paused = True
        log.info("stopwatch paused at %s", self.display())

    def resume(self) -> None:
        st = self.state
        if not st.running or not st.paused:
            return
        reference = self.clock.now_ms() - st.accumulated_elapsed_ms
        self.ticker.start(self._tick)
        st.reference_start_ms = reference
        st.paused = False
        log.info("stopwatch resumed at %s", self.display())

    def toggle_pause(self) -> None:
        if self.state.paused:
            self.resume()
        else:
            self.pause()

    def reset(self) -> None:
        self.ticker.stop()
        self.state = TimerState()
        log.info("stopwatch reset")

    def elapsed_ms(self) -> int:
        st = self.state
        if st.running and not st.paused:
            return self._measure()
        return st.accumulated_elapsed_ms

    def display(self) -> str:
        return format_elapsed_ms(self.elapsed_ms())

    def _measure(self) -> int:
        # never report less than what was already accumulated
        return max(self.state.accumulated_elapsed_ms,
                   int(self.clock.now_ms() - self.state.reference_start_ms))

    def _tick(self) -> None:
        st = self.state
        if not st.running or st.paused:
            return
        st.accumulated_elapsed_ms = self._measure()
