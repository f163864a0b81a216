"""Models for operational health tracking."""

from __future__ import annotations

from enum import Enum


class HealthStatus(str, Enum):
    """Overall health classification for the runtime."""

    OK = "ok"
    DEGRADED = "degraded"
    FAILING = "failing"
