"""Tests for the analysis session state machine."""

from __future__ import annotations

from analysis.session import AnalysisSession, SessionListener, SessionStatus, highest_danger
from vision.detections import DangerLevel, Detection, DetectionKind


def _detection(level: DangerLevel = DangerLevel.HIGH, kind: DetectionKind = DetectionKind.PERSON) -> Detection:
    return Detection(
        kind=kind,
        confidence=0.7,
        danger_level=level,
        location="clip.mp4",
        description="Person detected on tracks",
        time_in_video=2.0,
    )


def test_new_session_is_ready_and_empty() -> None:
    session = AnalysisSession("clip.mp4")

    assert session.status is SessionStatus.READY
    assert session.detections == []
    assert session.progress_fraction == 0.0
    assert session.threat_level is DangerLevel.LOW


def test_begin_is_noop_while_analyzing() -> None:
    session = AnalysisSession("clip.mp4")

    generation = session.begin()

    assert generation is not None
    assert session.status is SessionStatus.ANALYZING
    assert session.begin() is None
    assert session.generation == generation


def test_cancel_returns_to_ready_and_drops_late_writes() -> None:
    session = AnalysisSession("clip.mp4")
    generation = session.begin()
    assert session.append(_detection(), generation)

    assert session.cancel() is True

    assert session.status is SessionStatus.READY
    assert session.detections == []
    assert session.append(_detection(), generation) is False
    assert session.record_frame(generation) is False
    assert session.cancel() is False


def test_restart_discards_previous_results() -> None:
    session = AnalysisSession("clip.mp4")
    first = session.begin()
    session.append(_detection(), first)
    session.update_progress(4.0, 10.0, first)
    session.complete()

    second = session.begin()

    assert second != first
    assert session.detections == []
    assert session.progress_fraction == 0.0
    assert session.append(_detection(), first) is False


def test_complete_sets_full_progress_and_notifies() -> None:
    completed: list[tuple[str, int]] = []
    session = AnalysisSession("clip.mp4")
    session.subscribe(
        SessionListener(on_session_complete=lambda sid, items: completed.append((sid, len(items))))
    )
    generation = session.begin()
    session.append(_detection(DangerLevel.CRITICAL), generation)
    session.update_progress(6.0, 10.0, generation)

    assert session.complete() is True

    assert session.status is SessionStatus.COMPLETED
    assert session.progress_fraction == 1.0
    assert completed == [(session.session_id, 1)]
    assert session.append(_detection(), generation) is False
    assert session.complete() is False


def test_fail_records_message_and_is_terminal() -> None:
    session = AnalysisSession("clip.mp4")
    session.begin()

    assert session.fail("missing ultralytics") is True

    assert session.status is SessionStatus.ERROR
    assert session.status.is_terminal
    assert session.error_message == "missing ultralytics"
    assert session.cancel() is False


def test_reset_from_terminal_state() -> None:
    session = AnalysisSession("clip.mp4")
    session.begin()
    session.fail("boom")

    assert session.reset() is True
    assert session.status is SessionStatus.READY
    assert session.error_message is None


def test_progress_zero_for_live_source() -> None:
    session = AnalysisSession("live")
    generation = session.begin()

    session.update_progress(12.0, None, generation)

    assert session.progress_fraction == 0.0


def test_listener_failure_does_not_break_append() -> None:
    seen: list[Detection] = []

    def _boom(detection: Detection) -> None:
        raise RuntimeError("listener down")

    session = AnalysisSession("clip.mp4")
    session.subscribe(SessionListener(on_detection=_boom))
    session.subscribe(SessionListener(on_detection=seen.append))
    generation = session.begin()

    assert session.append(_detection(), generation) is True

    assert len(session.detections) == 1
    assert len(seen) == 1


def test_status_change_listener_sees_transitions() -> None:
    transitions: list[SessionStatus] = []
    session = AnalysisSession("clip.mp4")
    session.subscribe(SessionListener(on_status_change=lambda sid, status: transitions.append(status)))

    session.begin()
    session.cancel()

    assert transitions == [SessionStatus.ANALYZING, SessionStatus.READY]


def test_summary_counts_and_threat_level() -> None:
    session = AnalysisSession("clip.mp4")
    generation = session.begin()
    session.append(_detection(DangerLevel.MEDIUM, DetectionKind.ANIMAL), generation)
    session.append(_detection(DangerLevel.CRITICAL, DetectionKind.VEHICLE), generation)
    session.record_frame(generation)

    summary = session.summary()

    assert summary["detections"] == 2
    assert summary["dangerous"] == 1
    assert summary["threat_level"] == "critical"
    assert summary["frames_analyzed"] == 1
    assert session.counts_by_level()[DangerLevel.MEDIUM] == 1


def test_highest_danger_defaults_to_low() -> None:
    assert highest_danger([]) is DangerLevel.LOW
    assert highest_danger([_detection(DangerLevel.HIGH), _detection(DangerLevel.MEDIUM)]) is DangerLevel.HIGH
