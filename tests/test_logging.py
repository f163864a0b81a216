"""Tests for logging helpers."""

from __future__ import annotations

import logging

from core import logging as core_logging
from vision.detections import DangerLevel, Detection, DetectionKind


def test_set_level_accepts_names() -> None:
    previous = core_logging.logger.level
    try:
        assert core_logging.set_level("debug") == logging.DEBUG
        assert core_logging.set_level("not-a-level") == logging.INFO
    finally:
        core_logging.logger.setLevel(previous)


def test_log_detection_uses_warning_for_dangerous(monkeypatch) -> None:
    calls: list[str] = []
    monkeypatch.setattr(core_logging.logger, "warning", lambda message: calls.append("warning"))
    monkeypatch.setattr(core_logging.logger, "info", lambda message: calls.append("info"))

    for level in (DangerLevel.CRITICAL, DangerLevel.LOW):
        core_logging.log_detection(
            Detection(
                kind=DetectionKind.PERSON,
                confidence=0.9,
                danger_level=level,
                location="clip.mp4",
                description="Person detected on tracks",
                time_in_video=2.0,
            )
        )

    assert calls == ["warning", "info"]


def test_enable_file_logging_writes_file(tmp_path) -> None:
    log_path = tmp_path / "logs" / "railwatch.log"

    core_logging.enable_file_logging(log_path)
    core_logging.logger.info("file logging check")
    core_logging._shutdown_file_logging()
    core_logging._remove_queue_handlers()
    core_logging._file_log_path = None

    assert "file logging check" in log_path.read_text(encoding="utf-8")
