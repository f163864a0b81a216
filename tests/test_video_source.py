"""Tests for video sources."""

from __future__ import annotations

import asyncio
import random
from types import SimpleNamespace

import numpy as np
import pytest

from analysis.scheduler import FrameScheduler, SchedulerSettings
from analysis.session import SessionStatus
from vision import video_source
from vision.classifier import DetectionClassifier
from vision.inference import StaticInferenceAdapter
from vision.video_source import SimulatedVideoSource, VideoFileSource, is_live


def test_recorded_source_advances_and_ends() -> None:
    source = SimulatedVideoSource("clip.mp4", duration_s=5.0)

    source.advance(2.0)
    source.advance(2.0)
    assert source.current_position() == 4.0
    assert not source.has_ended()

    source.advance(2.0)
    assert source.current_position() == 5.0
    assert source.has_ended()


def test_live_source_ignores_advance() -> None:
    source = SimulatedVideoSource("CAM-001", source_id="track-1")

    source.advance(10.0)

    assert is_live(source)
    assert source.current_position() == 0.0
    assert not source.has_ended()
    source.end()
    assert source.has_ended()


def test_capture_frame_shape() -> None:
    source = SimulatedVideoSource("clip.mp4", duration_s=5.0, frame_size=(12, 16))

    frame = source.capture_frame()

    assert frame.shape == (12, 16, 3)
    assert source.frames_captured == 1


def test_negative_duration_rejected() -> None:
    with pytest.raises(ValueError):
        SimulatedVideoSource("clip.mp4", duration_s=-1.0)


def test_video_file_source_rejects_unreadable_file(tmp_path) -> None:
    bogus = tmp_path / "not_a_video.mp4"
    bogus.write_bytes(b"not a video")

    with pytest.raises(ValueError):
        VideoFileSource(bogus)


CAP_PROP_POS_MSEC, CAP_PROP_FPS, CAP_PROP_FRAME_COUNT = 0, 5, 7


class _FakeCapture:
    """OpenCV capture over a 10 fps, 100 frame clip; selected reads fail."""

    def __init__(self, path: str, failing_reads: set[int]) -> None:
        self.path = path
        self.failing_reads = failing_reads
        self.reads = 0
        self.position_ms = 0.0

    def isOpened(self) -> bool:
        return True

    def get(self, prop: int) -> float:
        return {CAP_PROP_FPS: 10.0, CAP_PROP_FRAME_COUNT: 100.0}.get(prop, 0.0)

    def set(self, prop: int, value: float) -> bool:
        if prop == CAP_PROP_POS_MSEC:
            self.position_ms = value
        return True

    def read(self):
        self.reads += 1
        if self.reads in self.failing_reads:
            return False, None
        return True, np.zeros((4, 4, 3), dtype=np.uint8)

    def release(self) -> None:
        pass


def _fake_file_source(monkeypatch, failing_reads: set[int]) -> VideoFileSource:
    fake_cv2 = SimpleNamespace(
        CAP_PROP_POS_MSEC=CAP_PROP_POS_MSEC,
        CAP_PROP_FPS=CAP_PROP_FPS,
        CAP_PROP_FRAME_COUNT=CAP_PROP_FRAME_COUNT,
        VideoCapture=lambda path: _FakeCapture(path, failing_reads),
    )
    monkeypatch.setattr(video_source, "_require_video_deps", lambda: fake_cv2)
    return VideoFileSource("clip.mp4")


def test_unreadable_frame_mid_clip_does_not_end_stream(monkeypatch) -> None:
    source = _fake_file_source(monkeypatch, failing_reads={1})
    source.seek(4.0)

    with pytest.raises(ValueError):
        source.capture_frame()

    assert not source.has_ended()
    assert source.current_position() == 4.0


def test_unreadable_last_frame_ends_stream(monkeypatch) -> None:
    source = _fake_file_source(monkeypatch, failing_reads={1})
    source.seek(9.95)

    with pytest.raises(ValueError):
        source.capture_frame()

    assert source.has_ended()
    source.seek(0.0)
    assert not source.has_ended()


def test_run_survives_unreadable_frame_mid_clip(monkeypatch) -> None:
    source = _fake_file_source(monkeypatch, failing_reads={2})

    async def _run():
        adapter = StaticInferenceAdapter(default=[])
        scheduler = FrameScheduler(
            adapter,
            classifier=DetectionClassifier(rng=random.Random(3)),
            settings=SchedulerSettings(period_s=2.0, tick_interval_s=0.001, inference_timeout_s=1.0),
        )
        scheduler.start(source)
        session = await scheduler.wait(source, timeout=5.0)
        runtime = scheduler.get_runtime_status()
        await scheduler.shutdown()
        return adapter, session, runtime

    adapter, session, runtime = asyncio.run(_run())

    assert session.status is SessionStatus.COMPLETED
    assert source.current_position() == 10.0
    assert session.progress_fraction == 1.0
    assert adapter.calls == 4
    assert runtime["frame_failures"] == 1
