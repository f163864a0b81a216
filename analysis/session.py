"""Analysis session state machine and detection aggregate."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import threading
from typing import Any, Callable
import uuid

from core.logging import logger
from vision.detections import DangerLevel, Detection, utc_now


class SessionStatus(str, Enum):
    """Lifecycle states of one analysis run."""

    READY = "ready"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.ERROR)


@dataclass(frozen=True)
class SessionListener:
    """Fire-and-forget callbacks for session activity."""

    on_detection: Callable[[Detection], None] | None = None
    on_status_change: Callable[[str, SessionStatus], None] | None = None
    on_session_complete: Callable[[str, list[Detection]], None] | None = None


class AnalysisSession:
    """Mutable aggregate owning one source's detections and run status.

    Every run gets a new generation number from :meth:`begin`. Producers tag
    their writes with the generation they were started under, so results from
    a cancelled or replaced run are dropped instead of applied.
    """

    def __init__(self, source_name: str, session_id: str | None = None) -> None:
        self.session_id = session_id or f"session-{uuid.uuid4().hex[:12]}"
        self.source_name = source_name
        self._lock = threading.RLock()
        self._status = SessionStatus.READY
        self._detections: list[Detection] = []
        self._generation = 0
        self._progress = 0.0
        self._error_message: str | None = None
        self._frames_analyzed = 0
        self._last_analysis_at: datetime | None = None
        self._started_at: datetime | None = None
        self._finished_at: datetime | None = None
        self._listeners: list[SessionListener] = []

    @property
    def status(self) -> SessionStatus:
        with self._lock:
            return self._status

    @property
    def detections(self) -> list[Detection]:
        with self._lock:
            return list(self._detections)

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def progress_fraction(self) -> float:
        with self._lock:
            return self._progress

    @property
    def error_message(self) -> str | None:
        with self._lock:
            return self._error_message

    @property
    def frames_analyzed(self) -> int:
        with self._lock:
            return self._frames_analyzed

    @property
    def last_analysis_at(self) -> datetime | None:
        with self._lock:
            return self._last_analysis_at

    def subscribe(self, listener: SessionListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def unsubscribe(self, listener: SessionListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def is_current(self, generation: int) -> bool:
        """Return whether writes from ``generation`` may still be applied."""

        with self._lock:
            return self._status is SessionStatus.ANALYZING and generation == self._generation

    def begin(self) -> int | None:
        """Enter ``analyzing`` from a freshly reset session.

        Returns the new run generation, or ``None`` when a run is already in
        progress (the call is then a no-op).
        """

        with self._lock:
            if self._status is SessionStatus.ANALYZING:
                logger.debug("[SESSION] %s already analyzing; start ignored", self.session_id)
                return None
            self._reset_locked()
            self._generation += 1
            self._started_at = utc_now()
            generation = self._generation
            old_status = self._swap_status_locked(SessionStatus.ANALYZING)
        self._announce(old_status, SessionStatus.ANALYZING)
        return generation

    def cancel(self) -> bool:
        """Return to ``ready`` after a manual stop; this is not a failure."""

        with self._lock:
            if self._status is not SessionStatus.ANALYZING:
                logger.debug("[SESSION] %s not analyzing; stop ignored", self.session_id)
                return False
            self._generation += 1
            self._detections.clear()
            old_status = self._swap_status_locked(SessionStatus.READY)
        self._announce(old_status, SessionStatus.READY)
        return True

    def complete(self) -> bool:
        """Mark the run finished at end-of-stream."""

        with self._lock:
            if self._status is not SessionStatus.ANALYZING:
                logger.debug("[SESSION] %s not analyzing; complete ignored", self.session_id)
                return False
            self._progress = 1.0
            self._finished_at = utc_now()
            detections = list(self._detections)
            old_status = self._swap_status_locked(SessionStatus.COMPLETED)
        self._announce(old_status, SessionStatus.COMPLETED)
        self._notify("on_session_complete", self.session_id, detections)
        return True

    def fail(self, message: str) -> bool:
        """Mark the run failed because inference cannot be used at all."""

        with self._lock:
            if self._status is not SessionStatus.ANALYZING:
                logger.debug("[SESSION] %s not analyzing; fail ignored", self.session_id)
                return False
            self._error_message = message
            self._finished_at = utc_now()
            old_status = self._swap_status_locked(SessionStatus.ERROR)
        self._announce(old_status, SessionStatus.ERROR)
        return True

    def reset(self) -> bool:
        """Discard a finished run's results and return to ``ready``."""

        with self._lock:
            if self._status is SessionStatus.ANALYZING:
                return False
            self._reset_locked()
            self._generation += 1
            old_status = self._swap_status_locked(SessionStatus.READY)
        self._announce(old_status, SessionStatus.READY)
        return True

    def append(self, detection: Detection, generation: int) -> bool:
        """Append a detection produced under ``generation``; stale writes are dropped."""

        with self._lock:
            if not self.is_current(generation):
                return False
            self._detections.append(detection)
        self._notify("on_detection", detection)
        return True

    def record_frame(self, generation: int) -> bool:
        """Count one analyzed frame for the current run."""

        with self._lock:
            if not self.is_current(generation):
                return False
            self._frames_analyzed += 1
            self._last_analysis_at = utc_now()
            return True

    def update_progress(self, position: float, duration: float | None, generation: int) -> None:
        with self._lock:
            if not self.is_current(generation):
                return
            if not duration or duration <= 0:
                self._progress = 0.0
                return
            self._progress = max(0.0, min(1.0, position / duration))

    def counts_by_level(self) -> dict[DangerLevel, int]:
        counts = {level: 0 for level in DangerLevel}
        for detection in self.detections:
            counts[detection.danger_level] += 1
        return counts

    @property
    def dangerous_count(self) -> int:
        return sum(1 for detection in self.detections if detection.danger_level.is_dangerous)

    @property
    def threat_level(self) -> DangerLevel:
        return highest_danger(self.detections)

    def summary(self) -> dict[str, Any]:
        with self._lock:
            status = self._status
            detections = list(self._detections)
            progress = self._progress
            frames = self._frames_analyzed
            last_analysis_at = self._last_analysis_at
            error_message = self._error_message
            started_at = self._started_at
            finished_at = self._finished_at
        return {
            "session_id": self.session_id,
            "source": self.source_name,
            "status": status.value,
            "progress": round(progress, 3),
            "frames_analyzed": frames,
            "last_analysis_at": last_analysis_at.isoformat() if last_analysis_at else None,
            "detections": len(detections),
            "dangerous": sum(1 for item in detections if item.danger_level.is_dangerous),
            "threat_level": highest_danger(detections).value,
            "error": error_message,
            "started_at": started_at.isoformat() if started_at else None,
            "finished_at": finished_at.isoformat() if finished_at else None,
        }

    def _reset_locked(self) -> None:
        self._detections.clear()
        self._progress = 0.0
        self._error_message = None
        self._frames_analyzed = 0
        self._last_analysis_at = None
        self._started_at = None
        self._finished_at = None

    def _swap_status_locked(self, status: SessionStatus) -> SessionStatus:
        old_status = self._status
        self._status = status
        return old_status

    def _announce(self, old_status: SessionStatus, status: SessionStatus) -> None:
        if old_status is status:
            return
        logger.info(
            "[SESSION] %s (%s) %s -> %s",
            self.session_id,
            self.source_name,
            old_status.value,
            status.value,
        )
        self._notify("on_status_change", self.session_id, status)

    def _notify(self, hook: str, *args: Any) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            callback = getattr(listener, hook)
            if callback is None:
                continue
            try:
                callback(*args)
            except Exception:
                logger.exception("[SESSION] Listener %s failed", hook)


def highest_danger(detections: list[Detection]) -> DangerLevel:
    """Return the most severe danger level present (``low`` when empty)."""

    level = DangerLevel.LOW
    for detection in detections:
        if detection.danger_level.rank > level.rank:
            level = detection.danger_level
    return level
