"""Frame scheduler: periodic sampling with single-flight inference per source."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import math
import time
from typing import Any, Mapping

from analysis.session import AnalysisSession, SessionListener, SessionStatus
from core.logging import log_detection, logger
from vision.classifier import DetectionClassifier
from vision.inference import BaseInferenceAdapter, InferenceAdapter, InferenceUnavailableError
from vision.video_source import VideoSource, is_live


@dataclass(frozen=True)
class SchedulerSettings:
    """Runtime settings for the sampling loop."""

    period_s: float = 2.0
    tick_interval_s: float | None = None
    inference_timeout_s: float | None = 10.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SchedulerSettings":
        defaults = cls()
        analysis = config.get("analysis") if isinstance(config, Mapping) else None
        inference = config.get("inference") if isinstance(config, Mapping) else None
        analysis = analysis if isinstance(analysis, Mapping) else {}
        inference = inference if isinstance(inference, Mapping) else {}
        tick_interval = analysis.get("tick_interval_s", defaults.tick_interval_s)
        timeout = inference.get("timeout_s", defaults.inference_timeout_s)
        return cls(
            period_s=float(analysis.get("period_s", defaults.period_s)),
            tick_interval_s=float(tick_interval) if tick_interval is not None else None,
            inference_timeout_s=float(timeout) if timeout is not None else None,
        )


@dataclass
class _Run:
    """One sampling run; ``stop_event`` doubles as its cancellation token."""

    source: VideoSource
    session: AnalysisSession
    generation: int
    period_s: float
    tick_interval_s: float
    stop_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: asyncio.Task[None] | None = None
    ticks: int = 0


class FrameScheduler:
    """Drives frame sampling for any number of sources.

    At most one inference call is outstanding per source at any instant; a
    tick that finds a call still running is skipped rather than queued. Each
    source owns exactly one :class:`AnalysisSession`.
    """

    def __init__(
        self,
        adapter: InferenceAdapter | BaseInferenceAdapter,
        classifier: DetectionClassifier | None = None,
        settings: SchedulerSettings | None = None,
    ) -> None:
        self._adapter = adapter
        self._classifier = classifier if classifier is not None else DetectionClassifier()
        self.settings = settings if settings is not None else SchedulerSettings()
        self._sessions: dict[str, AnalysisSession] = {}
        self._runs: dict[str, _Run] = {}
        self._in_flight: dict[str, asyncio.Task[None]] = {}
        self._listeners: list[SessionListener] = []
        self._ticks = 0
        self._skipped_ticks = 0
        self._frames_dispatched = 0
        self._frame_failures = 0
        self._stale_results = 0
        self._detections_appended = 0
        self._last_tick_monotonic: float | None = None

    def subscribe(self, listener: SessionListener) -> None:
        """Attach ``listener`` to every current and future session."""

        if listener in self._listeners:
            return
        self._listeners.append(listener)
        for session in self._sessions.values():
            session.subscribe(listener)

    def get_session(self, source_id: str) -> AnalysisSession | None:
        return self._sessions.get(source_id)

    def session_for(self, source: VideoSource) -> AnalysisSession:
        """Return the session for ``source``, creating a ready one if needed."""

        session = self._sessions.get(source.source_id)
        if session is None:
            session = AnalysisSession(source_name=source.name)
            for listener in self._listeners:
                session.subscribe(listener)
            self._sessions[source.source_id] = session
        return session

    def is_running(self, source_id: str) -> bool:
        run = self._runs.get(source_id)
        return run is not None and not run.stop_event.is_set()

    def start(
        self,
        source: VideoSource | None,
        period: float | None = None,
        tick_interval_s: float | None = None,
    ) -> AnalysisSession:
        """Begin sampling ``source`` every ``period`` seconds of recording.

        Must be called from a running event loop. Raises ``ValueError`` for a
        missing source or a non-positive period; the session is left ready.
        Starting a source that is already analyzing is a no-op.
        """

        if source is None:
            raise ValueError("A video source is required to start analysis")
        period_s = self.settings.period_s if period is None else period
        if not _positive(period_s):
            raise ValueError(f"Sampling period must be positive, got {period_s!r}")
        if tick_interval_s is None:
            tick_interval_s = self.settings.tick_interval_s
        if tick_interval_s is None:
            tick_interval_s = period_s
        if not _positive(tick_interval_s):
            raise ValueError(f"Tick interval must be positive, got {tick_interval_s!r}")

        loop = asyncio.get_running_loop()
        session = self.session_for(source)
        if self.is_running(source.source_id):
            logger.warning("[SCHEDULER] %s is already being analyzed", source.name)
            return session

        generation = session.begin()
        if generation is None:
            return session

        if not self._adapter.is_available():
            reason = self._adapter.unavailable_reason or "inference backend unavailable"
            logger.error("[SCHEDULER] Cannot analyze %s: %s", source.name, reason)
            session.fail(reason)
            return session

        run = _Run(
            source=source,
            session=session,
            generation=generation,
            period_s=float(period_s),
            tick_interval_s=float(tick_interval_s),
        )
        self._runs[source.source_id] = run
        run.task = loop.create_task(
            self._run_loop(run),
            name=f"frame-scheduler-{source.source_id}",
        )
        logger.info(
            "[SCHEDULER] Started %s (period=%.2fs tick=%.2fs live=%s)",
            source.name,
            run.period_s,
            run.tick_interval_s,
            is_live(source),
        )
        return session

    def stop(self, source: VideoSource | str) -> bool:
        """Cancel sampling and return the session to ready.

        An inference call still in flight is left to finish; its result is
        dropped because the session generation has moved on.
        """

        source_id = _source_id(source)
        run = self._runs.pop(source_id, None)
        if run is not None:
            run.stop_event.set()
            if run.task is not None and not run.task.done():
                run.task.cancel()
        session = self._sessions.get(source_id)
        if session is None:
            return False
        stopped = session.cancel()
        if stopped:
            logger.info("[SCHEDULER] Stopped %s", session.source_name)
        return stopped

    def remove(self, source: VideoSource | str) -> bool:
        """Stop any run for the source and discard its session."""

        source_id = _source_id(source)
        self.stop(source_id)
        session = self._sessions.pop(source_id, None)
        if session is None:
            return False
        for listener in self._listeners:
            session.unsubscribe(listener)
        return True

    def analyze_now(self, source: VideoSource | str) -> bool:
        """Run one extra analysis of the current frame without advancing.

        Follows the same single-flight rule as scheduled ticks; returns whether
        an inference call was issued.
        """

        run = self._runs.get(_source_id(source))
        if run is None or run.stop_event.is_set():
            return False
        if self._has_in_flight(run.source.source_id):
            return False
        return self._dispatch(run, advance=False)

    async def wait(self, source: VideoSource | str, timeout: float | None = None) -> AnalysisSession | None:
        """Wait for the source's current run to finish and return its session."""

        source_id = _source_id(source)
        run = self._runs.get(source_id)
        if run is not None and run.task is not None:
            await asyncio.wait({run.task}, timeout=timeout)
        return self._sessions.get(source_id)

    async def shutdown(self) -> None:
        """Stop every run and wait for outstanding work to settle."""

        tasks: list[asyncio.Task[None]] = []
        for source_id, run in list(self._runs.items()):
            if run.task is not None:
                tasks.append(run.task)
            self.stop(source_id)
        tasks.extend(self._in_flight.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def get_runtime_status(self) -> dict[str, int | float | str]:
        """Return counters for health probes and diagnostics."""

        now = time.monotonic()
        last_tick_age_s = (
            round(now - self._last_tick_monotonic, 3)
            if self._last_tick_monotonic is not None
            else -1.0
        )
        in_flight = sum(1 for task in self._in_flight.values() if not task.done())
        return {
            "adapter_available": int(self._adapter.is_available()),
            "adapter_reason": self._adapter.unavailable_reason,
            "active_runs": len(self._runs),
            "sessions": len(self._sessions),
            "in_flight": in_flight,
            "ticks": self._ticks,
            "skipped_ticks": self._skipped_ticks,
            "frames_dispatched": self._frames_dispatched,
            "frame_failures": self._frame_failures,
            "stale_results_dropped": self._stale_results,
            "detections_appended": self._detections_appended,
            "errored_sessions": sum(
                1 for session in self._sessions.values() if session.status is SessionStatus.ERROR
            ),
            "last_tick_age_s": last_tick_age_s,
        }

    async def _run_loop(self, run: _Run) -> None:
        source_id = run.source.source_id
        try:
            while not run.stop_event.is_set():
                if await self._tick(run):
                    break
                try:
                    await asyncio.wait_for(run.stop_event.wait(), timeout=run.tick_interval_s)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            logger.debug("[SCHEDULER] Loop for %s cancelled", run.source.name)
            raise
        except Exception:
            logger.exception("[SCHEDULER] Loop for %s crashed", run.source.name)
            run.session.fail(f"Sampling loop crashed for {run.source.name}")
        finally:
            run.stop_event.set()
            if self._runs.get(source_id) is run:
                del self._runs[source_id]

    async def _tick(self, run: _Run) -> bool:
        """Run one scheduled tick; returns ``True`` once the run is over."""

        self._ticks += 1
        run.ticks += 1
        self._last_tick_monotonic = time.monotonic()

        if not run.session.is_current(run.generation):
            return True

        if run.source.has_ended():
            await self._finish(run)
            return True

        if self._has_in_flight(run.source.source_id):
            self._skipped_ticks += 1
            logger.debug("[SCHEDULER] Tick %d for %s skipped (inference in flight)", run.ticks, run.source.name)
            return False

        self._dispatch(run, advance=True)
        return False

    def _dispatch(self, run: _Run, advance: bool) -> bool:
        source = run.source
        live = is_live(source)
        position = source.current_position()

        frame: Any = None
        try:
            frame = source.capture_frame()
        except Exception:
            self._frame_failures += 1
            logger.exception("[SCHEDULER] Failed to capture frame from %s at %.2fs", source.name, position)

        if advance and not live:
            source.advance(run.period_s)
        run.session.update_progress(source.current_position(), source.duration(), run.generation)

        if frame is None:
            return False

        time_in_video = None if live else position
        task = asyncio.get_running_loop().create_task(
            self._infer(run, frame, time_in_video),
            name=f"inference-{source.source_id}",
        )
        self._in_flight[source.source_id] = task
        task.add_done_callback(lambda done, source_id=source.source_id: self._release(source_id, done))
        self._frames_dispatched += 1
        return True

    async def _infer(self, run: _Run, frame: Any, time_in_video: float | None) -> None:
        source = run.source
        call = asyncio.ensure_future(self._adapter.infer(frame))
        try:
            raw_detections = await asyncio.wait_for(
                asyncio.shield(call),
                timeout=self.settings.inference_timeout_s,
            )
        except asyncio.TimeoutError:
            self._frame_failures += 1
            logger.warning(
                "[SCHEDULER] Inference timed out after %ss for %s; frame skipped",
                self.settings.inference_timeout_s,
                source.name,
            )
            # The model call cannot be interrupted; the source stays busy until it returns.
            await asyncio.wait({call})
            if not call.cancelled() and call.exception() is not None:
                logger.debug("[SCHEDULER] Late inference for %s failed: %s", source.name, call.exception())
            return
        except InferenceUnavailableError as exc:
            logger.error("[SCHEDULER] Inference unavailable for %s: %s", source.name, exc)
            run.stop_event.set()
            if run.session.is_current(run.generation):
                run.session.fail(str(exc))
            return
        except Exception:
            self._frame_failures += 1
            logger.exception("[SCHEDULER] Frame analysis failed for %s; continuing", source.name)
            return

        if not run.session.is_current(run.generation):
            self._stale_results += 1
            logger.debug("[SCHEDULER] Dropped stale result for %s", source.name)
            return

        run.session.record_frame(run.generation)
        for raw in raw_detections:
            detection = self._classifier.classify(raw, location=source.name, time_in_video=time_in_video)
            if run.session.append(detection, run.generation):
                self._detections_appended += 1
                log_detection(detection)

    async def _finish(self, run: _Run) -> None:
        pending = self._in_flight.get(run.source.source_id)
        if pending is not None and not pending.done():
            await asyncio.wait({pending})
        if run.session.complete():
            logger.info(
                "[SCHEDULER] Completed %s: %d detections in %d frames",
                run.source.name,
                len(run.session.detections),
                run.session.frames_analyzed,
            )

    def _has_in_flight(self, source_id: str) -> bool:
        task = self._in_flight.get(source_id)
        return task is not None and not task.done()

    def _release(self, source_id: str, task: asyncio.Task[None]) -> None:
        if self._in_flight.get(source_id) is task:
            del self._in_flight[source_id]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("[SCHEDULER] Inference task for %s raised: %s", source_id, exc)


def _source_id(source: VideoSource | str) -> str:
    if isinstance(source, str):
        return source
    return source.source_id


def _positive(value: Any) -> bool:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and number > 0
