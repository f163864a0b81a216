"""Diagnostics routines for the vision stack dependencies."""

from __future__ import annotations

import importlib.util
from dataclasses import dataclass

from diagnostics.models import DiagnosticResult, DiagnosticStatus


@dataclass(frozen=True)
class VisionProbeConfig:
    """Configuration for vision dependency checks."""

    backend: str = "yolo"
    require_all: bool = False


def probe(config: VisionProbeConfig | None = None, available_modules: set[str] | None = None) -> DiagnosticResult:
    """Run a vision probe to validate decoding and inference dependencies.

    Args:
        config: Optional configuration for probe behavior.
        available_modules: Optional override set for offline testing.

    Returns:
        Diagnostic result indicating vision dependency readiness.
    """

    name = "vision"
    settings = config or VisionProbeConfig()
    required = ["numpy", "cv2"]
    if settings.backend.strip().lower() == "yolo":
        required.append("ultralytics")

    missing: list[str] = []
    for module_name in required:
        if available_modules is not None:
            is_available = module_name in available_modules
        else:
            is_available = importlib.util.find_spec(module_name) is not None
        if not is_available:
            missing.append(module_name)

    if missing:
        status = DiagnosticStatus.FAIL if settings.require_all else DiagnosticStatus.WARN
        details = f"Missing vision deps: {', '.join(missing)}"
        return DiagnosticResult(name=name, status=status, details=details)

    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details=f"Vision dependencies available for backend '{settings.backend}'",
    )
