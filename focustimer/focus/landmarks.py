from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Tuple
import numpy as np

from focustimer.errors import MalformedLandmarks

# Indices for MediaPipe FaceMesh landmarks, grouped per facial feature.
# Nose runs bridge -> tip; eyes are [outer, top1, top2, inner, bottom1, bottom2]
FACE_MESH_GROUPS: Dict[str, List[int]] = {
    "nose": [168, 6, 197, 1],
    "left_eye": [33, 160, 158, 133, 153, 144],
    "right_eye": [263, 387, 385, 362, 380, 373],
}

# 68-point iBUG layout (dlib, face-api.js): contiguous ranges per feature
IBUG68_GROUPS: Dict[str, List[int]] = {
    "nose": list(range(27, 36)),
    "left_eye": list(range(36, 42)),
    "right_eye": list(range(42, 48)),
}

# (group, position) of the anchor points used by the head-tilt heuristic
FACE_MESH_ANCHORS: Dict[str, Tuple[str, int]] = {
    "nose_tip": ("nose", 3),
    "left_eye_bottom": ("left_eye", 4),
    "right_eye_bottom": ("right_eye", 4),
}
IBUG68_ANCHORS: Dict[str, Tuple[str, int]] = {
    "nose_tip": ("nose", 3),
    "left_eye_bottom": ("left_eye", 1),
    "right_eye_bottom": ("right_eye", 1),
}


@dataclass
class LandmarkSet:
    """Landmarks of one detected face, in pixel coords (y grows downward).

    groups maps a feature name to a Kx2 array of points; anchors names the
    (group, position) that the focus heuristic reads.
    """
    groups: Dict[str, np.ndarray]
    anchors: Mapping[str, Tuple[str, int]] = field(default_factory=lambda: dict(FACE_MESH_ANCHORS))

    @classmethod
    def from_groups(cls, groups: Mapping[str, object], anchors: Mapping[str, Tuple[str, int]] | None = None) -> "LandmarkSet":
        arrays = {name: np.asarray(pts, dtype=np.float32).reshape(-1, 2) for name, pts in groups.items()}
        return cls(arrays, dict(anchors or FACE_MESH_ANCHORS))

    @classmethod
    def from_face_mesh(cls, landmarks: np.ndarray) -> "LandmarkSet":
        return cls._from_indexed(landmarks, FACE_MESH_GROUPS, FACE_MESH_ANCHORS)

    @classmethod
    def from_ibug68(cls, landmarks: np.ndarray) -> "LandmarkSet":
        return cls._from_indexed(landmarks, IBUG68_GROUPS, IBUG68_ANCHORS)

    @classmethod
    def _from_indexed(cls, landmarks: np.ndarray, layout: Dict[str, List[int]],
                      anchors: Dict[str, Tuple[str, int]]) -> "LandmarkSet":
        pts = np.asarray(landmarks, dtype=np.float32)
        if pts.ndim != 2 or pts.shape[1] < 2:
            raise MalformedLandmarks(f"expected Nx2 landmark array, got shape {pts.shape}")
        n = pts.shape[0]
        need = max(max(idx) for idx in layout.values()) + 1
        if n < need:
            raise MalformedLandmarks(f"expected at least {need} landmarks, got {n}")
        groups = {name: pts[idx, :2].copy() for name, idx in layout.items()}
        return cls(groups, dict(anchors))

    def point(self, anchor: str) -> np.ndarray:
        try:
            group, pos = self.anchors[anchor]
        except KeyError:
            raise MalformedLandmarks(f"unknown anchor {anchor!r}") from None
        pts = self.groups.get(group)
        if pts is None or len(pts) <= pos:
            raise MalformedLandmarks(f"group {group!r} has no point at position {pos}")
        p = np.asarray(pts[pos], dtype=np.float32)
        if p.shape[0] < 2 or not np.all(np.isfinite(p[:2])):
            raise MalformedLandmarks(f"invalid point for {anchor!r}: {p!r}")
        return p[:2]

    @property
    def nose_tip(self) -> np.ndarray:
        return self.point("nose_tip")

    @property
    def left_eye_bottom(self) -> np.ndarray:
        return self.point("left_eye_bottom")

    @property
    def right_eye_bottom(self) -> np.ndarray:
        return self.point("right_eye_bottom")


def extract_landmark_sets(mp_results, image_width: int, image_height: int) -> List[LandmarkSet]:
    """Return one LandmarkSet per face in a FaceMesh result; empty list if none."""
    out: List[LandmarkSet] = []
    if not getattr(mp_results, 'multi_face_landmarks', None):
        return out
    for face in mp_results.multi_face_landmarks:
        lm = face.landmark
        pts = np.array([[p.x * image_width, p.y * image_height] for p in lm], dtype=np.float32)
        out.append(LandmarkSet.from_face_mesh(pts))
    return out
