from __future__ import annotations
from typing import Optional, Sequence
import logging

from pydantic import BaseModel

from focustimer.errors import FocusTrackingError
from focustimer.focus.accumulator import FocusAccumulator, TransitionEvent
from focustimer.focus.classifier import FocusClassifier
from focustimer.focus.landmarks import LandmarkSet
from focustimer.timer.stopwatch import StopwatchEngine
from focustimer.timer.ticker import Ticker
from focustimer.utils.clock import Clock, SystemClock
from focustimer.utils.timefmt import format_hms

log = logging.getLogger(__name__)

STATUS_INITIALIZING = "initializing"
STATUS_FOCUS = "focus"
STATUS_DISTRACTED = "distracted"

LOADING_MODELS_TEXT = "Loading face detection models..."
MODELS_LOADED_TEXT = "Models loaded. Please allow camera access."


class PresentationState(BaseModel):
    elapsed: str
    is_focused: bool
    status: str
    status_text: str
    focused_time: str
    distracted_time: str
    focus_percentage: int
    start_enabled: bool
    pause_enabled: bool
    reset_enabled: bool
    pause_label: str
    tracking_available: bool
    detection_active: bool


class FocusDrivenController:
    """Auto-pause policy: while the stopwatch is running, a distraction
    transition pauses it and a focus transition resumes it.

    Manual and automatic pause/resume go through the same stopwatch calls,
    so whichever event is processed last decides the state.
    """

    def __init__(self, stopwatch: StopwatchEngine):
        self.stopwatch = stopwatch

    def on_transition(self, event: TransitionEvent) -> None:
        if not self.stopwatch.running:
            return
        if event.became_focused:
            self.stopwatch.resume()
        else:
            self.stopwatch.pause()


class FocusSession:
    """One study session: stopwatch, focus accounting and status text.

    All mutation happens on a single event loop; nothing here is locked.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        ticker: Ticker | None = None,
        classifier: FocusClassifier | None = None,
    ):
        self.clock = clock or SystemClock()
        self.classifier = classifier or FocusClassifier()
        self.accumulator = FocusAccumulator()
        self.stopwatch = StopwatchEngine(self.clock, ticker)
        self.controller = FocusDrivenController(self.stopwatch)
        self.accumulator.subscribe(self.controller.on_transition)
        self.accumulator.subscribe(self._on_transition)

        self.detection_active = False
        self.tracking_available = True
        self.status = STATUS_INITIALIZING
        self.status_text = LOADING_MODELS_TEXT
        self.last_error = ""

    # ---------- Commands ----------
    def start(self) -> None:
        self.stopwatch.start()
        if not self.detection_active:
            self.detection_active = True
            log.info("focus detection activated")

    def toggle_pause(self) -> None:
        if not self.stopwatch.running:
            return
        self.stopwatch.toggle_pause()

    def reset(self) -> None:
        self.stopwatch.reset()
        self.accumulator.reset()
        self._refresh_focus_status()

    def stop_detection(self) -> None:
        self.detection_active = False

    # ---------- Focus input ----------
    def process_landmarks(self, faces: Sequence[LandmarkSet]) -> Optional[TransitionEvent]:
        """Classify the primary face of a frame (or its absence) and account for it."""
        if not self.tracking_available:
            return None
        primary = faces[0] if faces else None
        focused = self.classifier.classify(primary)
        return self.accumulator.observe(focused, self.clock.now_ms())

    # ---------- Status ----------
    def set_status(self, status: str, text: str) -> None:
        self.status = status
        self.status_text = text

    def tracking_ready(self) -> None:
        self.tracking_available = True
        self.set_status(STATUS_INITIALIZING, MODELS_LOADED_TEXT)

    def tracking_unavailable(self, error: FocusTrackingError) -> None:
        log.warning("focus tracking disabled: %s", error)
        self.tracking_available = False
        self.last_error = str(error)
        self.set_status(STATUS_DISTRACTED, error.status_text)

    def _on_transition(self, event: TransitionEvent) -> None:
        self._refresh_focus_status()

    def _refresh_focus_status(self) -> None:
        if not self.tracking_available:
            return
        if self.accumulator.is_focused:
            self.set_status(STATUS_FOCUS, "Focused")
        else:
            self.set_status(STATUS_DISTRACTED, "Distracted")

    # ---------- View ----------
    def view(self) -> PresentationState:
        sw = self.stopwatch
        return PresentationState(
            elapsed=sw.display(),
            is_focused=self.accumulator.is_focused,
            status=self.status,
            status_text=self.status_text,
            focused_time=format_hms(self.accumulator.focused_seconds),
            distracted_time=format_hms(self.accumulator.distracted_seconds),
            focus_percentage=self.accumulator.focus_percentage(),
            start_enabled=not sw.running,
            pause_enabled=sw.running,
            reset_enabled=sw.running,
            pause_label="Resume" if sw.paused else "Pause",
            tracking_available=self.tracking_available,
            detection_active=self.detection_active,
        )
