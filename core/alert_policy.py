"""Danger alert policy: turns dangerous detections into bus events."""

from __future__ import annotations

from dataclasses import dataclass, field
import threading
import time
from typing import Mapping

from core.event_bus import Event, EventBus
from vision.detections import DangerLevel, Detection


_LEVEL_PRIORITY = {
    DangerLevel.CRITICAL: "critical",
    DangerLevel.HIGH: "high",
    DangerLevel.MEDIUM: "normal",
    DangerLevel.LOW: "low",
}


@dataclass(frozen=True)
class Alert:
    """Alert payload definition."""

    key: str
    message: str
    level: DangerLevel = DangerLevel.HIGH
    metadata: Mapping[str, object] = field(default_factory=dict)
    ttl_s: float | None = None
    cooldown_s: float | None = None


class AlertPolicy:
    """Emits alerts with a per-key cooldown and a TTL on the published event."""

    def __init__(self, *, cooldown_s: float = 30.0, ttl_s: float = 120.0) -> None:
        self._cooldown_s = float(cooldown_s)
        self._ttl_s = float(ttl_s)
        self._last_emitted: dict[str, float] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> "AlertPolicy":
        alerts_cfg = config.get("alerts") if isinstance(config, Mapping) else None
        if not isinstance(alerts_cfg, Mapping):
            return cls()
        cooldown_s = float(alerts_cfg.get("cooldown_s", 30.0))
        ttl_s = float(alerts_cfg.get("ttl_s", 120.0))
        return cls(cooldown_s=cooldown_s, ttl_s=ttl_s)

    def emit(self, event_bus: EventBus, alert: Alert) -> bool:
        now = time.monotonic()
        cooldown = alert.cooldown_s if alert.cooldown_s is not None else self._cooldown_s
        with self._lock:
            last_sent = self._last_emitted.get(alert.key)
            if last_sent is not None and (now - last_sent) < cooldown:
                return False
            self._last_emitted[alert.key] = now
        ttl_s = alert.ttl_s if alert.ttl_s is not None else self._ttl_s
        event = Event(
            source="alert",
            kind="danger_alert",
            priority=_LEVEL_PRIORITY[alert.level],
            content=alert.message,
            metadata={"danger_level": alert.level.value, **dict(alert.metadata)},
            dedupe_key=alert.key,
            ttl_s=ttl_s,
        )
        event_bus.publish(event, coalesce=True)
        return True

    def emit_for_detection(self, event_bus: EventBus, detection: Detection, track_label: str) -> bool:
        """Raise a danger alert for high/critical detections; others are ignored."""

        if not detection.danger_level.is_dangerous:
            return False
        alert = Alert(
            key=f"danger:{track_label}",
            message=f"DANGER ALERT: {detection.description} detected at {track_label}",
            level=detection.danger_level,
            metadata={
                "detection_id": detection.id,
                "kind": detection.kind.value,
                "confidence": round(detection.confidence, 3),
                "location": detection.location,
            },
        )
        return self.emit(event_bus, alert)
