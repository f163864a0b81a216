"""Health probes for operational monitoring."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Mapping

from core.ops_models import HealthStatus


@dataclass(frozen=True)
class HealthProbeResult:
    """Result of a single subsystem health probe."""

    name: str
    status: HealthStatus
    summary: str
    details: Mapping[str, str | float | int] = field(default_factory=dict)


def probe_scheduler(scheduler: Any | None, stale_after_s: float = 30.0) -> HealthProbeResult:
    """Probe frame scheduler health from its runtime counters."""

    if scheduler is None:
        return HealthProbeResult(
            name="scheduler",
            status=HealthStatus.DEGRADED,
            summary="Frame scheduler not initialized",
        )

    try:
        runtime = scheduler.get_runtime_status()
    except Exception as exc:  # noqa: BLE001 - probe should not raise
        return HealthProbeResult(
            name="scheduler",
            status=HealthStatus.DEGRADED,
            summary="Frame scheduler status unavailable",
            details={"error": str(exc)},
        )

    details: dict[str, str | float | int] = dict(runtime)
    adapter_available = bool(int(runtime.get("adapter_available", 0)))
    active_runs = int(runtime.get("active_runs", 0))
    errored = int(runtime.get("errored_sessions", 0))
    failures = int(runtime.get("frame_failures", 0))
    dispatched = int(runtime.get("frames_dispatched", 0))
    last_tick_age_s = float(runtime.get("last_tick_age_s", -1.0))

    if not adapter_available:
        reason = str(runtime.get("adapter_reason") or "unknown reason")
        return HealthProbeResult(
            name="scheduler",
            status=HealthStatus.FAILING,
            summary=f"Inference backend unavailable: {reason}",
            details=details,
        )
    if active_runs > 0 and last_tick_age_s > stale_after_s:
        return HealthProbeResult(
            name="scheduler",
            status=HealthStatus.FAILING,
            summary=f"Sampling stalled (last tick {last_tick_age_s:.1f}s ago)",
            details=details,
        )
    if errored > 0:
        status = HealthStatus.DEGRADED
        summary = f"{errored} session(s) in error"
    elif dispatched and failures * 2 >= dispatched:
        status = HealthStatus.DEGRADED
        summary = f"High frame failure rate ({failures}/{dispatched})"
    elif active_runs == 0:
        status = HealthStatus.OK
        summary = "Scheduler idle"
    else:
        status = HealthStatus.OK
        summary = f"Analyzing {active_runs} source(s)"
    return HealthProbeResult(
        name="scheduler",
        status=status,
        summary=summary,
        details=details,
    )


def probe_report_directory(directory: str | Path) -> HealthProbeResult:
    """Probe that exported reports can be written."""

    path = Path(directory)
    details: dict[str, str | float | int] = {"directory": str(path)}
    if path.exists() and not path.is_dir():
        return HealthProbeResult(
            name="reports",
            status=HealthStatus.FAILING,
            summary="Report path is not a directory",
            details=details,
        )
    target = path if path.exists() else path.parent
    if not target.exists():
        return HealthProbeResult(
            name="reports",
            status=HealthStatus.DEGRADED,
            summary="Report directory will be created on first export",
            details=details,
        )
    if not os.access(target, os.W_OK):
        return HealthProbeResult(
            name="reports",
            status=HealthStatus.FAILING,
            summary="Report directory is not writable",
            details=details,
        )
    return HealthProbeResult(
        name="reports",
        status=HealthStatus.OK,
        summary="Report directory writable",
        details=details,
    )
