from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional, Protocol

log = logging.getLogger(__name__)

TickCallback = Callable[[], None]


class Ticker(Protocol):
    def start(self, callback: TickCallback) -> None: ...
    def stop(self) -> None: ...

    @property
    def active(self) -> bool: ...


class AsyncioTicker:
    """Calls back every period_s seconds on the running event loop.

    Must be started from inside a running loop. Ticks only refresh the
    published time; a late or skipped tick loses nothing.
    """

    def __init__(self, period_s: float = 1.0):
        if period_s <= 0:
            raise ValueError(f"tick period must be positive, got {period_s}")
        self.period_s = float(period_s)
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, callback: TickCallback) -> None:
        self.stop()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(callback))

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, callback: TickCallback) -> None:
        while True:
            await asyncio.sleep(self.period_s)
            try:
                callback()
            except Exception:
                log.exception("tick callback failed")


class ManualTicker:
    """Ticker fired by hand via tick(); records start/stop calls."""

    def __init__(self):
        self._callback: Optional[TickCallback] = None
        self.starts = 0
        self.stops = 0

    @property
    def active(self) -> bool:
        return self._callback is not None

    def start(self, callback: TickCallback) -> None:
        self._callback = callback
        self.starts += 1

    def stop(self) -> None:
        self._callback = None
        self.stops += 1

    def tick(self) -> None:
        if self._callback is not None:
            self._callback()
