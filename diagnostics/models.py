"""Models for diagnostics results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DiagnosticStatus(str, Enum):
    """Status for diagnostics checks, ordered from healthy to broken."""

    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"


@dataclass(frozen=True)
class DiagnosticResult:
    """Outcome of one probe over the analysis pipeline's dependencies."""

    name: str
    status: DiagnosticStatus
    details: str

    @property
    def failed(self) -> bool:
        return self.status is DiagnosticStatus.FAIL
