from __future__ import annotations
from typing import Awaitable, Callable, Optional
import asyncio
import logging

from focustimer.errors import DetectionCycleFailure
from focustimer.session.controller import FocusSession
from .detector import DetectionAdapter
from .frames import FrameSource

log = logging.getLogger(__name__)


class DetectionLoop:
    """Self-paced detection task: each cycle waits for the next frame, runs
    the detector and feeds the session, then starts the next cycle at once.

    Cancellation is cooperative. stop() clears the session's detection flag,
    which is checked at the top of every cycle, so a cycle already in flight
    still completes. A failing cycle is logged and retried after
    retry_delay_s; it never reaches the stopwatch.
    """

    def __init__(
        self,
        session: FocusSession,
        detector: DetectionAdapter,
        frames: FrameSource,
        retry_delay_s: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session = session
        self.detector = detector
        self.frames = frames
        self.retry_delay_s = float(retry_delay_s)
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.cycles = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _should_run(self) -> bool:
        return self.session.detection_active and self.session.tracking_available

    def ensure_started(self) -> None:
        if self.running or not self._should_run():
            return
        self._task = asyncio.get_running_loop().create_task(self.run())
        self._task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        if self._task is task:
            self._task = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("detection loop crashed", exc_info=exc)
            # frames are refused until the next Start restarts the loop
            self.session.stop_detection()

    def stop(self) -> None:
        self.session.stop_detection()

    async def aclose(self) -> None:
        self.stop()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def run_once(self) -> bool:
        """One detection cycle. Returns False when the cycle failed."""
        try:
            frame = await self.frames.read()
            faces = await self.detector.detect_frame(frame)
        except DetectionCycleFailure as e:
            self.failures += 1
            log.warning("detection cycle failed: %s", e)
            return False
        except EOFError:
            raise
        except Exception:
            self.failures += 1
            log.exception("detection cycle failed")
            return False
        self.session.process_landmarks(faces)
        self.cycles += 1
        return True

    async def run(self) -> None:
        log.info("detection loop started")
        try:
            while self._should_run():
                ok = await self.run_once()
                if ok:
                    # yield so HTTP handlers and ticks interleave with detection
                    await asyncio.sleep(0)
                else:
                    await self._sleep(self.retry_delay_s)
        except EOFError:
            log.info("frame source closed")
        log.info("detection loop stopped after %d cycles (%d failures)", self.cycles, self.failures)
