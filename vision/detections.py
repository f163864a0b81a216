"""Detection records for the track analysis pipeline.

Bounding boxes are normalized to the source frame dimensions and represented as
``(x, y, width, height)`` with each value expected in the inclusive range
``[0.0, 1.0]``. They only live on :class:`RawDetection`; a classified
:class:`Detection` does not keep them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import uuid


class DetectionKind(str, Enum):
    """Object categories relevant to track safety."""

    PERSON = "person"
    ANIMAL = "animal"
    VEHICLE = "vehicle"
    DEBRIS = "debris"
    OBSTACLE = "obstacle"


class DangerLevel(str, Enum):
    """Ordinal risk category assigned to each detection."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _DANGER_RANK[self]

    @property
    def is_dangerous(self) -> bool:
        return self in (DangerLevel.HIGH, DangerLevel.CRITICAL)


_DANGER_RANK = {
    DangerLevel.LOW: 0,
    DangerLevel.MEDIUM: 1,
    DangerLevel.HIGH: 2,
    DangerLevel.CRITICAL: 3,
}


BoundingBox = tuple[float, float, float, float]


@dataclass(frozen=True)
class RawDetection:
    """Unclassified model output for one object in one frame."""

    class_id: int
    confidence: float
    bbox: BoundingBox = (0.0, 0.0, 0.0, 0.0)
    label: str | None = None


def new_detection_id() -> str:
    return f"det-{uuid.uuid4().hex}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Detection:
    """Classified, risk-leveled detection."""

    kind: DetectionKind
    confidence: float
    danger_level: DangerLevel
    location: str
    description: str
    time_in_video: float | None = None
    captured_at: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=new_detection_id)
