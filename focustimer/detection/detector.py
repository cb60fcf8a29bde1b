from __future__ import annotations
from typing import List, Optional, Protocol
import asyncio
import logging
import threading

import numpy as np

from focustimer.errors import DetectionCycleFailure, MalformedLandmarks, ModelLoadFailure
from focustimer.focus.landmarks import LandmarkSet, extract_landmark_sets

log = logging.getLogger(__name__)

RECONFIGURABLE = ("max_num_faces", "min_detection_confidence", "min_tracking_confidence", "refine_landmarks")


class DetectionAdapter(Protocol):
    async def detect_frame(self, frame: np.ndarray) -> List[LandmarkSet]: ...


class FaceMeshDetector:
    """MediaPipe FaceMesh behind the detection boundary.

    load() builds the graph and raises ModelLoadFailure if MediaPipe is
    missing or the model cannot be created. detect_frame() runs the blocking
    process() call in a worker thread; any failure inside is reported as
    DetectionCycleFailure.
    """

    def __init__(
        self,
        max_num_faces: int = 1,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        refine_landmarks: bool = False,
    ):
        self.max_num_faces = max_num_faces
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self.refine_landmarks = refine_landmarks
        self._face_mesh = None
        # MediaPipe graphs are not thread-safe; lock around calls
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._face_mesh is not None

    def _build(self):
        try:
            import mediapipe as mp
            mp_fm = mp.solutions.face_mesh
            return mp_fm.FaceMesh(
                static_image_mode=False,
                max_num_faces=self.max_num_faces,
                refine_landmarks=self.refine_landmarks,
                min_detection_confidence=self.min_detection_confidence,
                min_tracking_confidence=self.min_tracking_confidence,
            )
        except Exception as e:
            raise ModelLoadFailure(f"FaceMesh unavailable: {e}") from e

    def load(self) -> None:
        if self._face_mesh is not None:
            return
        self._face_mesh = self._build()
        log.info("FaceMesh loaded (max_faces=%d conf=%.2f)", self.max_num_faces, self.min_detection_confidence)

    def reconfigure(self, **settings) -> None:
        """Apply new FaceMesh options, rebuilding the graph if it is loaded.

        On ModelLoadFailure the previous options and graph stay in place.
        """
        unknown = [k for k in settings if k not in RECONFIGURABLE]
        if unknown:
            raise ValueError(f"cannot reconfigure {unknown}")
        previous = {k: getattr(self, k) for k in settings}
        for k, v in settings.items():
            setattr(self, k, v)
        if self._face_mesh is None:
            return
        try:
            graph = self._build()
        except ModelLoadFailure:
            for k, v in previous.items():
                setattr(self, k, v)
            raise
        with self._lock:
            old, self._face_mesh = self._face_mesh, graph
        old.close()
        log.info("FaceMesh rebuilt with %s", settings)

    def close(self) -> None:
        with self._lock:
            if self._face_mesh is not None:
                self._face_mesh.close()
                self._face_mesh = None

    def _process(self, frame: np.ndarray) -> List[LandmarkSet]:
        if self._face_mesh is None:
            raise DetectionCycleFailure("detector not loaded")
        h, w = frame.shape[:2]
        with self._lock:
            results = self._face_mesh.process(frame)
        return extract_landmark_sets(results, w, h)

    async def detect_frame(self, frame: np.ndarray) -> List[LandmarkSet]:
        try:
            return await asyncio.to_thread(self._process, frame)
        except DetectionCycleFailure:
            raise
        except (MalformedLandmarks, RuntimeError, ValueError) as e:
            raise DetectionCycleFailure(str(e)) from e


class StaticDetector:
    """Detector returning scripted results; for tests and camera-less demos."""

    def __init__(self, results: Optional[list] = None):
        # each item is a list of faces, or an exception to raise for that frame
        self.results: list = list(results or [])
        self.calls = 0

    async def detect_frame(self, frame: np.ndarray) -> List[LandmarkSet]:
        self.calls += 1
        if not self.results:
            return []
        item = self.results.pop(0)
        if isinstance(item, Exception):
            raise item
        return item
