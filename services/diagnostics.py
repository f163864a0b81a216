"""Diagnostics routines for the report export path."""

from __future__ import annotations

from pathlib import Path

from diagnostics.models import DiagnosticResult, DiagnosticStatus
from services.health_probes import probe_report_directory
from core.ops_models import HealthStatus


def probe(report_dir: Path | None = None) -> DiagnosticResult:
    """Check that analysis reports can be exported.

    Args:
        report_dir: Report directory; defaults to ``reports`` under the cwd.

    Returns:
        Diagnostic result indicating export readiness.
    """

    directory = report_dir if report_dir is not None else Path.cwd() / "reports"
    health = probe_report_directory(directory)
    if health.status is HealthStatus.OK:
        status = DiagnosticStatus.PASS
    elif health.status is HealthStatus.DEGRADED:
        status = DiagnosticStatus.WARN
    else:
        status = DiagnosticStatus.FAIL
    return DiagnosticResult(name="reports", status=status, details=f"{health.summary} ({directory})")
