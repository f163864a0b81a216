"""Diagnostics routines for the core subsystem."""

from __future__ import annotations

import importlib.util

from diagnostics.models import DiagnosticResult, DiagnosticStatus


def probe() -> DiagnosticResult:
    """Run a core probe to validate logging readiness."""

    name = "core"
    from core import logging as core_logging

    if core_logging.logger is None or core_logging.logger.name != core_logging.LOGGER_NAME:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details="Core logger failed to initialize",
        )
    if importlib.util.find_spec("rich") is None:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.WARN,
            details="Rich logging not available (plain stream handler)",
        )
    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details="Rich logging enabled",
    )
