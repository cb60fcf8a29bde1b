from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Optional
import logging

from focustimer.utils.timefmt import round_half_up

log = logging.getLogger(__name__)


@dataclass
class FocusState:
    is_focused: bool = False
    last_transition_ms: float | None = None  # None until the first transition is seen
    focused_s: float = 0.0
    distracted_s: float = 0.0


@dataclass(frozen=True)
class TransitionEvent:
    became_focused: bool
    ts_ms: float


TransitionListener = Callable[[TransitionEvent], None]


class FocusAccumulator:
    """Debounces per-frame verdicts into focus transitions and charges the
    time between transitions to the state that was active before the change.

    Time is attributed retroactively: the stretch since the last transition
    is only counted once the next transition arrives.
    """

    def __init__(self):
        self.state = FocusState()
        self._listeners: List[TransitionListener] = []

    def subscribe(self, listener: TransitionListener) -> None:
        self._listeners.append(listener)

    def observe(self, verdict: bool, now_ms: float) -> Optional[TransitionEvent]:
        st = self.state
        if verdict == st.is_focused:
            return None

        if st.last_transition_ms is not None:
            dt = (now_ms - st.last_transition_ms) / 1000.0
            if st.is_focused:
                st.focused_s += dt
            else:
                st.distracted_s += dt

        st.is_focused = verdict
        st.last_transition_ms = now_ms

        event = TransitionEvent(became_focused=verdict, ts_ms=now_ms)
        log.info(
            "focus -> %s focused=%.1fs distracted=%.1fs",
            "FOCUSED" if verdict else "DISTRACTED",
            st.focused_s,
            st.distracted_s,
        )
        for listener in self._listeners:
            listener(event)
        return event

    def reset(self) -> None:
        self.state = FocusState()

    @property
    def is_focused(self) -> bool:
        return self.state.is_focused

    @property
    def focused_seconds(self) -> float:
        return self.state.focused_s

    @property
    def distracted_seconds(self) -> float:
        return self.state.distracted_s

    def focus_percentage(self) -> int:
        total = self.state.focused_s + self.state.distracted_s
        if total <= 0:
            return 0
        return round_half_up(self.state.focused_s / total * 100.0)
