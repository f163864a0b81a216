"""Vision package exports."""

from vision.classifier import DetectionClassifier, danger_level_for, kind_for_class
from vision.detections import DangerLevel, Detection, DetectionKind, RawDetection

__all__ = [
    "DangerLevel",
    "Detection",
    "DetectionClassifier",
    "DetectionKind",
    "RawDetection",
    "danger_level_for",
    "kind_for_class",
]
