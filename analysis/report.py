"""Portable JSON reports for analysis sessions."""

from __future__ import annotations

import json
from pathlib import Path
import re
import time
from typing import Any

from analysis.session import AnalysisSession
from core.logging import logger
from vision.detections import Detection, utc_now


_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class ReportExporter:
    """Serializes a session's detections; never touches session state."""

    def build(self, session: AnalysisSession) -> dict[str, Any]:
        detections = session.detections
        return {
            "source": session.source_name,
            "exportedAt": utc_now().isoformat(),
            "detectionCount": len(detections),
            "detections": [self._detection_entry(detection) for detection in detections],
        }

    def to_json(self, session: AnalysisSession) -> str:
        return json.dumps(self.build(session), indent=2, ensure_ascii=False)

    def write(self, session: AnalysisSession, directory: str | Path) -> Path:
        """Write the report into ``directory`` and return the file path."""

        directory = Path(directory).expanduser()
        directory.mkdir(parents=True, exist_ok=True)
        safe_name = _UNSAFE_FILENAME_CHARS.sub("_", session.source_name).strip("_") or "video"
        path = directory / f"analysis_report_{safe_name}_{int(time.time() * 1000)}.json"
        with path.open("w", encoding="utf-8") as handle:
            handle.write(self.to_json(session))
        logger.info("[REPORT] Wrote %s (%d detections)", path, len(session.detections))
        return path

    def _detection_entry(self, detection: Detection) -> dict[str, Any]:
        return {
            "timeInVideo": detection.time_in_video if detection.time_in_video is not None else 0,
            "kind": detection.kind.value,
            "confidence": detection.confidence,
            "dangerLevel": detection.danger_level.value,
            "description": detection.description,
        }
