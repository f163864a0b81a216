from __future__ import annotations

from pathlib import Path

from core.ops_models import HealthStatus
from services.health_probes import probe_report_directory, probe_scheduler


class _FakeScheduler:
    def __init__(self, status: dict[str, int | float | str]) -> None:
        self._status = status

    def get_runtime_status(self) -> dict[str, int | float | str]:
        return dict(self._status)


def _status(**overrides) -> dict[str, int | float | str]:
    status: dict[str, int | float | str] = {
        "adapter_available": 1,
        "adapter_reason": "",
        "active_runs": 2,
        "sessions": 2,
        "in_flight": 1,
        "ticks": 40,
        "skipped_ticks": 3,
        "frames_dispatched": 37,
        "frame_failures": 0,
        "stale_results_dropped": 0,
        "detections_appended": 5,
        "errored_sessions": 0,
        "last_tick_age_s": 0.4,
    }
    status.update(overrides)
    return status


def test_probe_scheduler_ok() -> None:
    result = probe_scheduler(_FakeScheduler(_status()))

    assert result.status is HealthStatus.OK
    assert result.details["detections_appended"] == 5


def test_probe_scheduler_failing_when_backend_unavailable() -> None:
    result = probe_scheduler(
        _FakeScheduler(_status(adapter_available=0, adapter_reason="missing ultralytics"))
    )

    assert result.status is HealthStatus.FAILING
    assert "missing ultralytics" in result.summary


def test_probe_scheduler_failing_when_stalled() -> None:
    result = probe_scheduler(_FakeScheduler(_status(last_tick_age_s=90.0)))

    assert result.status is HealthStatus.FAILING
    assert "stalled" in result.summary.lower()


def test_probe_scheduler_degraded_on_errors() -> None:
    errored = probe_scheduler(_FakeScheduler(_status(errored_sessions=1)))
    failing_frames = probe_scheduler(_FakeScheduler(_status(frame_failures=20)))

    assert errored.status is HealthStatus.DEGRADED
    assert failing_frames.status is HealthStatus.DEGRADED


def test_probe_scheduler_missing() -> None:
    assert probe_scheduler(None).status is HealthStatus.DEGRADED


def test_probe_report_directory(tmp_path: Path) -> None:
    assert probe_report_directory(tmp_path).status is HealthStatus.OK
    assert probe_report_directory(tmp_path / "missing" / "reports").status is HealthStatus.DEGRADED
