from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional
import json
import os
from pathlib import Path

DEFAULT_CONFIG_PATH = "config/focustimer_config.json"
CONFIG_ENV = "FOCUSTIMER_CONFIG"


@dataclass
class FocusTimerConfig:
    # Stopwatch display refresh
    tick_period_s: float = 1.0
    # Wait before the next detection cycle after a failed one
    detection_retry_delay_s: float = 1.0

    # FaceMesh detector
    max_num_faces: int = 1
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    refine_landmarks: bool = False

    # Disable to run the stopwatch without loading any model
    enable_detection: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path: str | Path) -> FocusTimerConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Focus timer config not found: {p}")
    data = json.loads(p.read_text())
    base = asdict(FocusTimerConfig())
    unknown = set(data or {}) - set(base)
    if unknown:
        raise ValueError(f"Unknown config keys in {p}: {sorted(unknown)}")
    base.update(data or {})
    return FocusTimerConfig(**base)


def resolve_config(path: Optional[str | Path] = None) -> FocusTimerConfig:
    """Explicit path, else $FOCUSTIMER_CONFIG, else the bundled file if present, else defaults."""
    if path is None:
        path = os.getenv(CONFIG_ENV)
        if path is None:
            if not Path(DEFAULT_CONFIG_PATH).exists():
                return FocusTimerConfig()
            path = DEFAULT_CONFIG_PATH
    return load_config(path)
