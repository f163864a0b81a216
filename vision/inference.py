"""Inference adapters that turn a single frame into raw detections."""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
import importlib
import importlib.util
import math
import random
from typing import Any, Iterable, Mapping, Protocol

from core.logging import logger
from vision.detections import BoundingBox, DetectionKind, RawDetection


class InferenceUnavailableError(RuntimeError):
    """Raised when the detection model cannot be used at all."""


@dataclass(frozen=True)
class InferenceSettings:
    """Runtime settings for the inference backend."""

    backend: str = "yolo"
    model: str = "yolov8n.pt"
    device: str = "cpu"
    min_confidence: float = 0.5
    timeout_s: float = 10.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "InferenceSettings":
        section = config.get("inference") if isinstance(config, Mapping) else None
        if not isinstance(section, Mapping):
            return cls()
        defaults = cls()
        return cls(
            backend=str(section.get("backend", defaults.backend)),
            model=str(section.get("model", defaults.model)),
            device=str(section.get("device", defaults.device)),
            min_confidence=float(section.get("min_confidence", defaults.min_confidence)),
            timeout_s=float(section.get("timeout_s", defaults.timeout_s)),
        )


class InferenceAdapter(Protocol):
    """Boundary to the external object-detection model."""

    min_confidence: float

    async def infer(self, frame: Any) -> list[RawDetection]:
        ...

    def is_available(self) -> bool:
        ...

    @property
    def unavailable_reason(self) -> str:
        ...


class BaseInferenceAdapter:
    """Shared adapter behavior: confidence filtering at the model boundary."""

    def __init__(self, min_confidence: float = 0.5) -> None:
        self.min_confidence = float(min_confidence)

    async def infer(self, frame: Any) -> list[RawDetection]:
        raw_detections = await self._predict(frame)
        return self.filter_detections(raw_detections)

    def filter_detections(self, raw_detections: Iterable[RawDetection]) -> list[RawDetection]:
        return [
            raw
            for raw in raw_detections
            if _finite(raw.confidence) and raw.confidence >= self.min_confidence
        ]

    def is_available(self) -> bool:
        return True

    @property
    def unavailable_reason(self) -> str:
        return ""

    def close(self) -> None:
        """Release model resources (no-op by default)."""

    async def _predict(self, frame: Any) -> list[RawDetection]:
        raise NotImplementedError


class UnavailableInferenceAdapter(BaseInferenceAdapter):
    """Placeholder for a backend that failed to initialize."""

    def __init__(self, reason: str) -> None:
        super().__init__()
        self._reason = reason

    def is_available(self) -> bool:
        return False

    @property
    def unavailable_reason(self) -> str:
        return self._reason

    async def _predict(self, frame: Any) -> list[RawDetection]:
        raise InferenceUnavailableError(self._reason)


class YoloInferenceAdapter(BaseInferenceAdapter):
    """Adapter around an ultralytics YOLO model."""

    def __init__(self, model: Any, device: str = "cpu", min_confidence: float = 0.5) -> None:
        super().__init__(min_confidence=min_confidence)
        self._model = model
        self._device = device

    @classmethod
    def load(cls, settings: InferenceSettings) -> "YoloInferenceAdapter":
        """Load the configured model; raises :class:`InferenceUnavailableError` on failure."""

        if importlib.util.find_spec("ultralytics") is None:
            raise InferenceUnavailableError("missing ultralytics (install the 'yolo' extra)")

        ultralytics = importlib.import_module("ultralytics")
        logger.info("[INFERENCE] Loading YOLO model: %s (device=%s)", settings.model, settings.device)
        try:
            model = ultralytics.YOLO(settings.model)
        except Exception as exc:
            raise InferenceUnavailableError(
                f"Failed to initialize {settings.model}: {exc}"
            ) from exc
        logger.info("[INFERENCE] YOLO model loaded")
        return cls(model, device=settings.device, min_confidence=settings.min_confidence)

    async def _predict(self, frame: Any) -> list[RawDetection]:
        return await asyncio.to_thread(self._predict_sync, frame)

    def _predict_sync(self, frame: Any) -> list[RawDetection]:
        if frame is None:
            raise ValueError("Cannot run inference on an empty frame")

        results = self._model(frame, verbose=False, device=self._device)
        names = getattr(self._model, "names", {}) or {}
        detections: list[RawDetection] = []
        for result in results:
            for box in result.boxes:
                class_id = int(box.cls)
                x1, y1, x2, y2 = box.xyxyn.cpu().numpy().tolist()[0]
                detections.append(
                    RawDetection(
                        class_id=class_id,
                        confidence=float(box.conf),
                        bbox=_normalize_bbox(x1, y1, x2 - x1, y2 - y1),
                        label=names.get(class_id) if isinstance(names, Mapping) else None,
                    )
                )
        return detections


class SimulatedInferenceAdapter(BaseInferenceAdapter):
    """Random detection feed standing in for a model on demo tracks."""

    # Class ids used when a kind has a COCO counterpart; -1 means "label only".
    _KIND_CLASS_IDS = {
        DetectionKind.PERSON: 0,
        DetectionKind.ANIMAL: 16,
        DetectionKind.VEHICLE: 2,
        DetectionKind.DEBRIS: -1,
        DetectionKind.OBSTACLE: -1,
    }

    def __init__(
        self,
        detection_probability: float = 0.15,
        rng: random.Random | None = None,
        min_confidence: float = 0.5,
    ) -> None:
        super().__init__(min_confidence=min_confidence)
        if not 0.0 <= detection_probability <= 1.0:
            raise ValueError("detection_probability must be within [0, 1]")
        self.detection_probability = detection_probability
        self._rng = rng if rng is not None else random.Random()

    async def _predict(self, frame: Any) -> list[RawDetection]:
        if self._rng.random() >= self.detection_probability:
            return []
        kind = self._rng.choice(list(self._KIND_CLASS_IDS))
        x = self._rng.uniform(0.0, 0.8)
        y = self._rng.uniform(0.0, 0.8)
        return [
            RawDetection(
                class_id=self._KIND_CLASS_IDS[kind],
                confidence=self._rng.random() * 0.4 + 0.6,
                bbox=_normalize_bbox(x, y, self._rng.uniform(0.05, 0.2), self._rng.uniform(0.05, 0.2)),
                label=kind.value,
            )
        ]


class StaticInferenceAdapter(BaseInferenceAdapter):
    """Adapter that replays scripted results, for offline runs and tests.

    Each call pops the next scripted entry; an entry may be a list of raw
    detections, an exception instance (raised for that call) or a callable
    taking the frame. Once the script is exhausted ``default`` is returned.
    """

    def __init__(
        self,
        script: Iterable[Any] = (),
        default: list[RawDetection] | None = None,
        min_confidence: float = 0.5,
        delay_s: float = 0.0,
    ) -> None:
        super().__init__(min_confidence=min_confidence)
        self._script: deque[Any] = deque(script)
        self._default = list(default or [])
        self._delay_s = delay_s
        self.calls = 0
        self.frames: list[Any] = []

    def push(self, entry: Any) -> None:
        self._script.append(entry)

    async def _predict(self, frame: Any) -> list[RawDetection]:
        self.calls += 1
        self.frames.append(frame)
        if self._delay_s > 0:
            await asyncio.sleep(self._delay_s)
        entry: Any = self._script.popleft() if self._script else self._default
        if isinstance(entry, BaseException):
            raise entry
        if callable(entry):
            entry = entry(frame)
            if asyncio.iscoroutine(entry):
                entry = await entry
        return list(entry)


def create_inference_adapter(
    settings: InferenceSettings,
    rng: random.Random | None = None,
    detection_probability: float = 0.15,
) -> BaseInferenceAdapter:
    """Construct the configured adapter.

    A backend that fails to load yields an :class:`UnavailableInferenceAdapter`
    carrying the reason, so sessions started against it end in ``error``.
    """

    backend = settings.backend.strip().lower()
    if backend == "simulated":
        return SimulatedInferenceAdapter(
            detection_probability=detection_probability,
            rng=rng,
            min_confidence=settings.min_confidence,
        )
    if backend == "static":
        return StaticInferenceAdapter(min_confidence=settings.min_confidence)
    if backend != "yolo":
        raise ValueError(f"Unknown inference backend: {settings.backend!r}")

    try:
        return YoloInferenceAdapter.load(settings)
    except InferenceUnavailableError as exc:
        logger.error("[INFERENCE] Backend unavailable: %s", exc)
        return UnavailableInferenceAdapter(str(exc))


def _finite(value: float) -> bool:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return not (math.isnan(number) or math.isinf(number))


def _normalize_bbox(x: float, y: float, w: float, h: float) -> BoundingBox:
    x = max(0.0, min(1.0, x))
    y = max(0.0, min(1.0, y))
    w = max(0.0, min(1.0 - x, w))
    h = max(0.0, min(1.0 - y, h))
    return (x, y, w, h)
