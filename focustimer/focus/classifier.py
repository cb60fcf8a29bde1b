from __future__ import annotations
from dataclasses import dataclass
import logging

from focustimer.errors import MalformedLandmarks
from .landmarks import LandmarkSet

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FocusVerdict:
    focused: bool
    ts_ms: float


class FocusClassifier:
    """Head-tilt heuristic: nose tip below the eye line means the head is
    tilted down over a desk, which counts as focused. No face is not focused.
    """

    def classify_strict(self, landmarks: LandmarkSet | None) -> bool:
        if landmarks is None:
            return False
        nose_y = float(landmarks.nose_tip[1])
        eye_level = (float(landmarks.left_eye_bottom[1]) + float(landmarks.right_eye_bottom[1])) / 2.0
        return nose_y > eye_level

    def classify(self, landmarks: LandmarkSet | None) -> bool:
        try:
            return self.classify_strict(landmarks)
        except (MalformedLandmarks, IndexError, TypeError, ValueError) as e:
            log.debug("Unusable landmarks, treating frame as not focused: %s", e)
            return False

    def verdict(self, landmarks: LandmarkSet | None, ts_ms: float) -> FocusVerdict:
        return FocusVerdict(self.classify(landmarks), ts_ms)
