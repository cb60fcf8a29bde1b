from __future__ import annotations


class FocusTrackingError(Exception):
    """Base class for failures of the focus-tracking layer.

    None of these are fatal to the stopwatch: the session drops into a
    degraded mode and keeps timing without focus detection.
    """

    status_text = "Focus detection unavailable. Timer will work without focus detection."

    def __init__(self, message: str = "", status_text: str | None = None):
        super().__init__(message or self.status_text)
        if status_text is not None:
            self.status_text = status_text


class ModelLoadFailure(FocusTrackingError):
    status_text = "Error loading face detection. Timer will work without focus detection."


class CameraAccessDenied(FocusTrackingError):
    status_text = "Camera access denied. Timer will work without focus detection."


class DetectionCycleFailure(FocusTrackingError):
    """Transient per-frame failure; the detection loop retries after a delay."""

    status_text = "Face detection error. Retrying..."


class MalformedLandmarks(ValueError):
    pass
