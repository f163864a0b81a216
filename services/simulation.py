"""Simulated multi-track monitoring feed.

Every configured track gets a live synthetic camera analyzed by a shared
:class:`FrameScheduler` backed by the random detection adapter. Detections
flow into a :class:`TrackMonitor`, which raises danger alerts on the bus.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import random
from typing import Any, Iterable, Mapping

from analysis.scheduler import FrameScheduler, SchedulerSettings
from core.alert_policy import AlertPolicy
from core.event_bus import EventBus
from core.logging import logger
from services.track_monitor import Track, TrackMonitor
from vision.classifier import DetectionClassifier
from vision.inference import SimulatedInferenceAdapter
from vision.video_source import SimulatedVideoSource


@dataclass(frozen=True)
class SimulationSettings:
    tick_interval_s: float = 3.0
    detection_probability: float = 0.15
    seed: int | None = None
    tracks: tuple[Track, ...] = ()

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SimulationSettings":
        sim_cfg = config.get("simulation") if isinstance(config, Mapping) else None
        if not isinstance(sim_cfg, Mapping):
            return cls()
        seed = sim_cfg.get("seed")
        return cls(
            tick_interval_s=float(sim_cfg.get("tick_interval_s", 3.0)),
            detection_probability=float(sim_cfg.get("detection_probability", 0.15)),
            seed=int(seed) if seed is not None else None,
            tracks=tuple(build_tracks(sim_cfg.get("tracks") or [])),
        )


def build_tracks(entries: Iterable[Mapping[str, Any]]) -> list[Track]:
    """Build tracks from config entries; ids, numbers and cameras are positional."""

    tracks: list[Track] = []
    for index, entry in enumerate(entries):
        station = str(entry.get("station") or f"Station {index + 1}")
        tracks.append(
            Track(
                track_id=f"track-{index + 1}",
                station_name=station,
                track_number=f"{chr(ord('A') + index % 26)}-{index + 1}",
                location=str(entry.get("location") or ""),
                camera=f"CAM-{index + 1:03d}",
            )
        )
    return tracks


class SimulationService:
    """Runs the simulated feed for all tracks on the current event loop."""

    def __init__(
        self,
        settings: SimulationSettings,
        monitor: TrackMonitor | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self.settings = settings
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self.monitor = (
            monitor
            if monitor is not None
            else TrackMonitor(alert_policy=AlertPolicy(), event_bus=self.event_bus)
        )
        rng = random.Random(settings.seed)
        adapter = SimulatedInferenceAdapter(
            detection_probability=settings.detection_probability,
            rng=rng,
        )
        self.scheduler = FrameScheduler(
            adapter,
            classifier=DetectionClassifier(rng=rng),
            settings=SchedulerSettings(tick_interval_s=settings.tick_interval_s),
        )
        self._sources: dict[str, SimulatedVideoSource] = {}

    def start(self) -> None:
        """Start a live sampling run per track; requires a running loop."""

        for track in self.settings.tracks:
            self.monitor.register_track(track)
            source = self._sources.get(track.track_id)
            if source is None:
                source = SimulatedVideoSource(name=track.label, source_id=track.track_id)
                self._sources[track.track_id] = source
                session = self.scheduler.session_for(source)
                session.subscribe(self.monitor.listener_for(track.track_id))
            self.scheduler.start(source, tick_interval_s=self.settings.tick_interval_s)
            self.monitor.set_active(track.track_id, True)
        logger.info("[SIMULATION] Monitoring %d tracks", len(self.settings.tracks))

    async def stop(self) -> None:
        for track_id, source in self._sources.items():
            source.end()
            self.monitor.set_active(track_id, False)
        await self.scheduler.shutdown()
        logger.info("[SIMULATION] Stopped")

    async def run(self, duration_s: float) -> dict[str, int | str]:
        """Run the feed for ``duration_s`` seconds and return monitor stats."""

        try:
            self.start()
            await asyncio.sleep(duration_s)
        finally:
            await self.stop()
        return self.monitor.stats()
