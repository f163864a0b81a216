"""Video sources consumed by the frame scheduler.

The scheduler only needs playback position, optional total duration, an
ended signal, the ability to advance a recording and to grab the current
frame. Live sources report no duration and ignore ``advance``.
"""

from __future__ import annotations

import importlib
import importlib.util
from pathlib import Path
import threading
from typing import Any, Protocol
import uuid

import numpy as np

from core.logging import logger


class VideoSource(Protocol):
    """Minimal capability interface over a recording or live feed."""

    source_id: str
    name: str

    def current_position(self) -> float:
        ...

    def duration(self) -> float | None:
        ...

    def has_ended(self) -> bool:
        ...

    def advance(self, seconds: float) -> None:
        ...

    def capture_frame(self) -> Any:
        ...


def is_live(source: VideoSource) -> bool:
    return source.duration() is None


def _require_video_deps() -> Any:
    if importlib.util.find_spec("cv2") is None:
        raise RuntimeError("opencv-python is required for VideoFileSource")
    return importlib.import_module("cv2")


class VideoFileSource:
    """Seekable recording read through OpenCV."""

    def __init__(self, path: str | Path, source_id: str | None = None) -> None:
        self._cv2 = _require_video_deps()
        self.path = Path(path)
        self.name = self.path.name
        self.source_id = source_id or self.name
        self._capture = self._cv2.VideoCapture(str(self.path))
        if not self._capture.isOpened():
            raise ValueError(f"Could not open video file: {self.path}")

        fps = float(self._capture.get(self._cv2.CAP_PROP_FPS) or 0.0)
        frame_count = float(self._capture.get(self._cv2.CAP_PROP_FRAME_COUNT) or 0.0)
        if fps <= 0:
            fps = 30.0
        self._fps = fps
        self._duration = frame_count / fps if frame_count > 0 else 0.0
        self._position = 0.0
        self._tail_unreadable = False
        self._lock = threading.Lock()
        logger.info(
            "[VIDEO] Opened %s (duration=%.1fs fps=%.1f)", self.name, self._duration, self._fps
        )

    def current_position(self) -> float:
        with self._lock:
            return self._position

    def duration(self) -> float | None:
        return self._duration

    def has_ended(self) -> bool:
        with self._lock:
            return self._tail_unreadable or self._position >= self._duration

    def advance(self, seconds: float) -> None:
        with self._lock:
            self._position = min(self._duration, self._position + max(0.0, seconds))

    def seek(self, position: float) -> None:
        with self._lock:
            self._position = max(0.0, min(self._duration, position))
            self._tail_unreadable = False

    def capture_frame(self) -> Any:
        with self._lock:
            position_ms = self._position * 1000.0
            self._capture.set(self._cv2.CAP_PROP_POS_MSEC, position_ms)
            success, frame = self._capture.read()
            if not success:
                # A bad frame mid-clip is skipped; only the last frame ends the stream.
                if self._position >= self._duration - 1.0 / self._fps:
                    self._tail_unreadable = True
                raise ValueError(f"Could not read frame at {self._position:.2f}s from {self.name}")
            return frame

    def close(self) -> None:
        self._capture.release()


class SimulatedVideoSource:
    """Synthetic source producing flat frames; finite when ``duration_s`` is set."""

    def __init__(
        self,
        name: str,
        duration_s: float | None = None,
        frame_size: tuple[int, int] = (480, 640),
        source_id: str | None = None,
    ) -> None:
        if duration_s is not None and duration_s < 0:
            raise ValueError("duration_s must be non-negative")
        self.name = name
        self.source_id = source_id or f"{name}-{uuid.uuid4().hex[:8]}"
        self._duration = duration_s
        self._frame_size = frame_size
        self._position = 0.0
        self._ended = threading.Event()
        self.frames_captured = 0

    def current_position(self) -> float:
        return self._position

    def duration(self) -> float | None:
        return self._duration

    def has_ended(self) -> bool:
        if self._ended.is_set():
            return True
        return self._duration is not None and self._position >= self._duration

    def advance(self, seconds: float) -> None:
        if self._duration is None:
            return
        self._position = min(self._duration, self._position + max(0.0, seconds))

    def seek(self, position: float) -> None:
        upper = self._duration if self._duration is not None else position
        self._position = max(0.0, min(upper, position))

    def end(self) -> None:
        """Signal end-of-stream (the only way a live source ends)."""

        self._ended.set()

    def capture_frame(self) -> Any:
        self.frames_captured += 1
        height, width = self._frame_size
        shade = int(self._position * 10) % 256
        return np.full((height, width, 3), shade, dtype=np.uint8)
