"""Aggregation of detections from many tracks for the monitoring display."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
import threading
from typing import Any, Deque, Mapping

from analysis.session import SessionListener, highest_danger
from core.alert_policy import AlertPolicy
from core.event_bus import EventBus
from core.logging import logger
from vision.detections import DangerLevel, Detection


class TrackStatus(str, Enum):
    """Display status of a monitored track."""

    CLEAR = "clear"
    OBSTACLE = "obstacle"
    DANGER = "danger"


@dataclass(frozen=True)
class Track:
    """A monitored railway track and the camera watching it."""

    track_id: str
    station_name: str
    track_number: str
    location: str
    camera: str

    @property
    def label(self) -> str:
        return f"{self.station_name} - Track {self.track_number}"


@dataclass(frozen=True)
class TrackSnapshot:
    """Point-in-time view of one track."""

    track: Track
    status: TrackStatus
    detections: tuple[Detection, ...]
    active: bool


class _TrackState:
    def __init__(self, track: Track, recent_limit: int) -> None:
        self.track = track
        self.status = TrackStatus.CLEAR
        self.detections: Deque[Detection] = deque(maxlen=recent_limit)
        self.active = True


class TrackMonitor:
    """Merges detections from concurrently analyzed tracks.

    Keeps the most recent detections per track, derives the track status
    (critical -> danger, high -> obstacle) and publishes danger alerts when an
    alert policy and event bus are supplied.
    """

    def __init__(
        self,
        recent_limit: int = 10,
        alert_policy: AlertPolicy | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._recent_limit = max(1, int(recent_limit))
        self._alert_policy = alert_policy
        self._event_bus = event_bus
        self._lock = threading.Lock()
        self._tracks: dict[str, _TrackState] = {}

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        event_bus: EventBus | None = None,
    ) -> "TrackMonitor":
        feed_cfg = config.get("feed") if isinstance(config, Mapping) else None
        recent_limit = 10
        if isinstance(feed_cfg, Mapping):
            recent_limit = int(feed_cfg.get("recent_limit", recent_limit))
        return cls(
            recent_limit=recent_limit,
            alert_policy=AlertPolicy.from_config(config) if event_bus is not None else None,
            event_bus=event_bus,
        )

    def register_track(self, track: Track) -> None:
        with self._lock:
            if track.track_id not in self._tracks:
                self._tracks[track.track_id] = _TrackState(track, self._recent_limit)

    def set_active(self, track_id: str, active: bool) -> None:
        with self._lock:
            self._state(track_id).active = active

    def listener_for(self, track_id: str) -> SessionListener:
        """Return a session listener that feeds detections into ``track_id``."""

        def _on_detection(detection: Detection) -> None:
            self.record(track_id, detection)

        return SessionListener(on_detection=_on_detection)

    def record(self, track_id: str, detection: Detection) -> None:
        with self._lock:
            state = self._state(track_id)
            state.detections.append(detection)
            if detection.danger_level is DangerLevel.CRITICAL:
                state.status = TrackStatus.DANGER
            elif detection.danger_level is DangerLevel.HIGH:
                state.status = TrackStatus.OBSTACLE
            track = state.track

        if self._alert_policy is not None and self._event_bus is not None:
            if self._alert_policy.emit_for_detection(self._event_bus, detection, track.label):
                logger.warning("[MONITOR] Danger alert raised for %s: %s", track.label, detection.description)

    def clear_latest(self, track_id: str) -> Detection | None:
        """Dismiss the most recent detection; the track clears when none remain."""

        with self._lock:
            state = self._state(track_id)
            if not state.detections:
                return None
            dismissed = state.detections.pop()
            if not state.detections:
                state.status = TrackStatus.CLEAR
            return dismissed

    def snapshot(self, track_id: str) -> TrackSnapshot:
        with self._lock:
            state = self._state(track_id)
            return TrackSnapshot(
                track=state.track,
                status=state.status,
                detections=tuple(state.detections),
                active=state.active,
            )

    def snapshots(self) -> list[TrackSnapshot]:
        with self._lock:
            track_ids = list(self._tracks)
        return [self.snapshot(track_id) for track_id in track_ids]

    def all_detections(self) -> list[Detection]:
        with self._lock:
            return [item for state in self._tracks.values() for item in state.detections]

    def threat_level(self) -> str:
        """Return the overall threat label shown on the dashboard."""

        return highest_danger(self.all_detections()).value.upper()

    def stats(self) -> dict[str, int | str]:
        detections = self.all_detections()
        snapshots = self.snapshots()
        return {
            "tracks": len(snapshots),
            "active_cameras": sum(1 for item in snapshots if item.active),
            "clear_tracks": sum(1 for item in snapshots if item.status is TrackStatus.CLEAR),
            "total_detections": len(detections),
            "dangerous_detections": sum(1 for item in detections if item.danger_level.is_dangerous),
            "threat_level": highest_danger(detections).value.upper(),
        }

    def _state(self, track_id: str) -> _TrackState:
        state = self._tracks.get(track_id)
        if state is None:
            raise KeyError(f"Unknown track: {track_id}")
        return state
