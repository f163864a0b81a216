"""Risk classification of raw model detections."""

from __future__ import annotations

import random

from vision.detections import DangerLevel, Detection, DetectionKind, RawDetection


CONFIDENCE_FLOOR = 0.6

# COCO class ids of the detector mapped onto track-safety kinds.
COCO_CLASS_KINDS: dict[int, DetectionKind] = {
    0: DetectionKind.PERSON,
    1: DetectionKind.VEHICLE,
    2: DetectionKind.VEHICLE,
    3: DetectionKind.VEHICLE,
    5: DetectionKind.VEHICLE,
    7: DetectionKind.VEHICLE,
    15: DetectionKind.ANIMAL,
    16: DetectionKind.ANIMAL,
    17: DetectionKind.ANIMAL,
    18: DetectionKind.ANIMAL,
    19: DetectionKind.ANIMAL,
    20: DetectionKind.ANIMAL,
    21: DetectionKind.ANIMAL,
    22: DetectionKind.ANIMAL,
    23: DetectionKind.ANIMAL,
}

DESCRIPTIONS: dict[DetectionKind, tuple[str, ...]] = {
    DetectionKind.PERSON: (
        "Person detected on tracks",
        "Human presence detected",
        "Pedestrian in danger zone",
    ),
    DetectionKind.ANIMAL: (
        "Animal on railway tracks",
        "Wildlife detected",
        "Animal obstruction",
    ),
    DetectionKind.VEHICLE: (
        "Vehicle on tracks",
        "Unauthorized vehicle",
        "Emergency vehicle",
    ),
    DetectionKind.OBSTACLE: (
        "Unknown object detected",
        "Potential obstruction",
        "Foreign object",
    ),
    DetectionKind.DEBRIS: (
        "Debris on tracks",
        "Scattered objects",
        "Track obstruction",
    ),
}


def kind_for_class(class_id: int, label: str | None = None) -> DetectionKind:
    """Return the track-safety kind for a detector class id."""

    kind = COCO_CLASS_KINDS.get(class_id)
    if kind is not None:
        return kind
    return coerce_kind(label)


def coerce_kind(value: DetectionKind | str | None) -> DetectionKind:
    """Return ``value`` as a kind, falling back to obstacle for anything unknown."""

    if isinstance(value, DetectionKind):
        return value
    if value is None:
        return DetectionKind.OBSTACLE
    try:
        return DetectionKind(str(value).strip().lower())
    except ValueError:
        return DetectionKind.OBSTACLE


def danger_level_for(kind: DetectionKind | str, confidence: float) -> DangerLevel:
    """Return the danger level for a kind at the given confidence."""

    if confidence < CONFIDENCE_FLOOR:
        return DangerLevel.LOW

    kind = coerce_kind(kind)
    if kind is DetectionKind.PERSON:
        return DangerLevel.CRITICAL if confidence > 0.8 else DangerLevel.HIGH
    if kind is DetectionKind.VEHICLE:
        return DangerLevel.CRITICAL
    if kind is DetectionKind.ANIMAL:
        return DangerLevel.HIGH if confidence > 0.75 else DangerLevel.MEDIUM
    if kind is DetectionKind.DEBRIS:
        return DangerLevel.MEDIUM if confidence > 0.7 else DangerLevel.LOW
    if kind is DetectionKind.OBSTACLE:
        return DangerLevel.HIGH if confidence > 0.8 else DangerLevel.MEDIUM
    return DangerLevel.MEDIUM


class DetectionClassifier:
    """Turns raw detections into danger-leveled :class:`Detection` records.

    The description is picked from a fixed phrase set per kind; the choice is
    cosmetic, so callers that need stable output pass a seeded ``rng``.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng if rng is not None else random.Random()

    def classify(
        self,
        raw: RawDetection,
        location: str,
        time_in_video: float | None = None,
    ) -> Detection:
        kind = kind_for_class(raw.class_id, raw.label)
        confidence = max(0.0, min(1.0, float(raw.confidence)))
        return Detection(
            kind=kind,
            confidence=confidence,
            danger_level=danger_level_for(kind, confidence),
            location=location,
            description=self.describe(kind),
            time_in_video=time_in_video,
        )

    def classify_all(
        self,
        raw_detections: list[RawDetection],
        location: str,
        time_in_video: float | None = None,
    ) -> list[Detection]:
        return [self.classify(raw, location, time_in_video) for raw in raw_detections]

    def describe(self, kind: DetectionKind | str) -> str:
        phrases = DESCRIPTIONS[coerce_kind(kind)]
        return self._rng.choice(phrases)
