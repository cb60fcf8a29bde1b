from __future__ import annotations
from typing import Optional, Protocol
import asyncio
import io

import numpy as np
from PIL import Image, UnidentifiedImageError


class FrameSource(Protocol):
    async def read(self) -> np.ndarray: ...
    def close(self) -> None: ...


def np_from_jpeg(data: bytes) -> np.ndarray:
    """Decode an encoded image (JPEG/PNG) into an HxWx3 RGB uint8 array."""
    try:
        img = Image.open(io.BytesIO(data)).convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"could not decode frame: {e}") from e
    return np.array(img)


class LatestFrameSource:
    """Frames pushed by the browser over HTTP. Only the newest unread frame
    is kept, so a slow detector skips frames instead of queueing them.
    """

    def __init__(self):
        self._frame: Optional[np.ndarray] = None
        self._ready = asyncio.Event()
        self._closed = False
        self.pushed = 0
        self.dropped = 0

    def push(self, frame: np.ndarray) -> None:
        if self._frame is not None:
            self.dropped += 1
        self._frame = frame
        self.pushed += 1
        self._ready.set()

    def push_jpeg(self, data: bytes) -> np.ndarray:
        frame = np_from_jpeg(data)
        self.push(frame)
        return frame

    async def read(self) -> np.ndarray:
        while self._frame is None:
            if self._closed:
                raise EOFError("frame source closed")
            self._ready.clear()
            await self._ready.wait()
        frame, self._frame = self._frame, None
        return frame

    def close(self) -> None:
        self._closed = True
        self._ready.set()
