"""Command-line entry point for railway obstacle analysis."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
from pathlib import Path
import sys

from analysis.report import ReportExporter
from analysis.scheduler import FrameScheduler, SchedulerSettings
from analysis.session import AnalysisSession, SessionStatus
from config import ConfigController
from core.event_bus import EventBus
from core.logging import enable_file_logging, log_error, log_info, log_warning, logger, set_level
from services.simulation import SimulationService, SimulationSettings
from services.track_monitor import TrackMonitor
from vision.inference import InferenceSettings, create_inference_adapter
from vision.video_source import VideoFileSource


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Raw command-line arguments.

    Returns:
        Parsed arguments namespace.
    """

    parser = argparse.ArgumentParser(
        description="Detect obstacles on railway tracks in recorded or simulated video."
    )
    parser.add_argument(
        "--diagnostics",
        action="store_true",
        help="Run diagnostics probes and exit.",
    )
    subparsers = parser.add_subparsers(dest="command")

    analyze = subparsers.add_parser("analyze", help="Analyze a recorded video file.")
    analyze.add_argument("video", type=Path, help="Path to the video file.")
    analyze.add_argument("--period", type=float, default=None, help="Seconds of video per sample.")
    analyze.add_argument("--tick", type=float, default=None, help="Wall-clock seconds between samples.")
    analyze.add_argument("--backend", type=str, default=None, help="Inference backend override.")
    analyze.add_argument("--report-dir", type=Path, default=None, help="Directory for the JSON report.")
    analyze.add_argument("--no-report", action="store_true", help="Skip writing the JSON report.")

    simulate = subparsers.add_parser("simulate", help="Run the simulated multi-track feed.")
    simulate.add_argument("--duration", type=float, default=30.0, help="Seconds to run the feed.")
    simulate.add_argument("--seed", type=int, default=None, help="Random seed for reproducible runs.")
    return parser.parse_args(argv)


async def analyze_video(
    scheduler: FrameScheduler,
    source: VideoFileSource,
    period: float | None = None,
    tick_interval_s: float | None = None,
) -> AnalysisSession:
    """Analyze ``source`` to completion, stopping cleanly on cancellation."""

    session = scheduler.start(source, period=period, tick_interval_s=tick_interval_s)
    try:
        await scheduler.wait(source)
    finally:
        if scheduler.is_running(source.source_id):
            scheduler.stop(source)
        await scheduler.shutdown()
    return session


def run_analyze(args: argparse.Namespace, config: dict) -> int:
    inference_settings = InferenceSettings.from_config(config)
    if args.backend:
        inference_settings = dataclasses.replace(inference_settings, backend=args.backend)
    try:
        adapter = create_inference_adapter(inference_settings)
    except ValueError as exc:
        log_error(str(exc))
        return 2

    try:
        source = VideoFileSource(args.video)
    except (RuntimeError, ValueError, OSError) as exc:
        log_error(f"Cannot open {args.video}: {exc}")
        return 2

    scheduler = FrameScheduler(adapter, settings=SchedulerSettings.from_config(config))
    try:
        session = asyncio.run(
            analyze_video(scheduler, source, period=args.period, tick_interval_s=args.tick)
        )
    except ValueError as exc:
        log_error(f"Invalid analysis settings: {exc}")
        return 2
    except KeyboardInterrupt:
        log_warning("Analysis interrupted")
        return 130
    finally:
        source.close()
        adapter.close()

    summary = session.summary()
    if session.status is SessionStatus.ERROR:
        log_error(f"Analysis failed: {session.error_message}")
        return 1

    log_info(
        f"Analysis of {session.source_name} {session.status.value}: "
        f"{summary['detections']} detections, threat level {summary['threat_level'].upper()}"
    )
    if not args.no_report:
        report_dir = args.report_dir or Path(config["report"]["directory"])
        ReportExporter().write(session, report_dir)
    return 0


def run_simulate(args: argparse.Namespace, config: dict) -> int:
    settings = SimulationSettings.from_config(config)
    if args.seed is not None:
        settings = dataclasses.replace(settings, seed=args.seed)
    if not settings.tracks:
        log_error("No tracks configured under simulation.tracks")
        return 2

    event_bus = EventBus()
    monitor = TrackMonitor.from_config(config, event_bus=event_bus)
    try:
        service = SimulationService(settings, monitor=monitor, event_bus=event_bus)
        stats = asyncio.run(service.run(args.duration))
    except ValueError as exc:
        log_error(f"Invalid simulation settings: {exc}")
        return 2
    except KeyboardInterrupt:
        log_warning("Simulation interrupted")
        return 130

    for event in event_bus.drain():
        if event.priority == "critical":
            log_error(event.content or event.kind)
        else:
            log_warning(event.content or event.kind)
    log_info(
        f"Threat level {stats['threat_level']}: {stats['total_detections']} detections, "
        f"{stats['dangerous_detections']} dangerous, {stats['clear_tracks']}/{stats['tracks']} tracks clear"
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    """Application entry point.

    Args:
        argv: Optional list of command-line arguments.

    Returns:
        Process exit code.
    """

    if argv is None:
        argv = sys.argv[1:]

    args = parse_args(argv)
    if args.diagnostics:
        from diagnostics.run import main as diagnostics_main

        return diagnostics_main([])

    config_controller = ConfigController.get_instance()
    config = config_controller.get_config()
    set_level(config.get("logging_level", "INFO"))
    if config.get("file_logging_enabled", False):
        log_file_path = Path(config.get("log_file", "logs/railwatch.log"))
        enable_file_logging(log_file_path)
        logger.info("Writing logs to %s", log_file_path)

    if args.command == "analyze":
        return run_analyze(args, config)
    if args.command == "simulate":
        return run_simulate(args, config)

    parse_args(["--help"])
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
