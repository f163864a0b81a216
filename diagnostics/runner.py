"""Diagnostics runner utilities."""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable

from core.logging import logger as LOGGER
from diagnostics.models import DiagnosticResult, DiagnosticStatus


def format_results(results: Iterable[DiagnosticResult]) -> str:
    """Return a human-friendly diagnostics report with a status tally."""

    results = list(results)
    lines = ["Diagnostics report", "-" * 60]
    lines.extend(f"[{result.status.value}] {result.name}: {result.details}" for result in results)
    lines.append("-" * 60)
    tally = Counter(result.status for result in results)
    lines.append(", ".join(f"{status.value}={tally.get(status, 0)}" for status in DiagnosticStatus))
    return "\n".join(lines)


def run_diagnostics(probes: Iterable[Callable[[], DiagnosticResult]]) -> list[DiagnosticResult]:
    """Run every probe; a probe that raises is reported as a failure."""

    results: list[DiagnosticResult] = []
    for probe in probes:
        try:
            result = probe()
        except Exception as exc:  # noqa: BLE001 - diagnostics must keep running
            LOGGER.exception("[DIAGNOSTICS] Probe failed: %s", probe)
            result = DiagnosticResult(
                name=getattr(probe, "__name__", "unknown_probe"),
                status=DiagnosticStatus.FAIL,
                details=f"Probe raised exception: {exc}",
            )
        results.append(result)
    return results
