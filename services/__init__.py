"""Monitoring services built on the analysis pipeline."""

from services.simulation import SimulationService, SimulationSettings
from services.track_monitor import Track, TrackMonitor, TrackStatus

__all__ = [
    "SimulationService",
    "SimulationSettings",
    "Track",
    "TrackMonitor",
    "TrackStatus",
]
