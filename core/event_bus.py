"""Thread-safe bus holding danger alerts raised by the monitoring feed."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Deque


LOGGER = logging.getLogger(__name__)

PRIORITY_SCORES = {"critical": 3, "high": 2, "normal": 1, "low": 0}


@dataclass(frozen=True)
class Event:
    """Alert payload published by the alert policy."""

    source: str
    kind: str
    priority: str = "normal"
    content: str | None = None
    metadata: dict[str, object] = field(default_factory=dict)
    dedupe_key: str | None = None
    ttl_s: float | None = None
    created_at: float = field(default_factory=time.time)

    def is_expired(self, now: float | None = None) -> bool:
        if self.ttl_s is None:
            return False
        if now is None:
            now = time.time()
        return now - self.created_at > self.ttl_s

    @property
    def score(self) -> int:
        return PRIORITY_SCORES.get(self.priority, PRIORITY_SCORES["normal"])


class EventBus:
    """Bounded buffer of pending alerts; one alert per dedupe key when coalescing."""

    def __init__(self, maxlen: int = 200) -> None:
        self._maxlen = maxlen
        self._lock = threading.Lock()
        self._queue: Deque[Event] = deque()

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)

    def publish(self, event: Event, *, coalesce: bool = False) -> None:
        with self._lock:
            if coalesce and event.dedupe_key:
                for pending in self._queue:
                    if pending.dedupe_key == event.dedupe_key:
                        self._queue.remove(pending)
                        break
            if len(self._queue) >= self._maxlen:
                dropped = self._queue.popleft()
                LOGGER.warning("Alert bus full; dropping oldest alert from %s.", dropped.source)
            self._queue.append(event)

    def drain(self) -> list[Event]:
        """Remove and return unexpired alerts, most severe first, oldest first within a level."""

        now = time.time()
        with self._lock:
            events = [event for event in self._queue if not event.is_expired(now)]
            self._queue.clear()
        return sorted(events, key=lambda event: (-event.score, event.created_at))
