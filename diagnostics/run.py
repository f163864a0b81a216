"""Command-line entry point for running diagnostics."""

from __future__ import annotations

import argparse
from pathlib import Path
import tempfile

from config.diagnostics import probe as config_probe
from core.diagnostics import probe as core_probe
from diagnostics.models import DiagnosticResult
from diagnostics.runner import format_results, run_diagnostics
from services.diagnostics import probe as reports_probe
from vision.diagnostics import VisionProbeConfig, probe as vision_probe


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""

    parser = argparse.ArgumentParser(description="Run diagnostics probes.")
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Run probes against a temporary offline directory.",
    )
    parser.add_argument(
        "--base-dir",
        type=Path,
        default=None,
        help="Optional base directory for offline diagnostics.",
    )
    parser.add_argument(
        "--backend",
        default="yolo",
        help="Inference backend whose dependencies should be checked.",
    )
    return parser.parse_args(argv)


def collect(base_dir: Path | None = None, backend: str = "yolo") -> list[DiagnosticResult]:
    """Run every probe rooted at ``base_dir`` (cwd when omitted)."""

    root = base_dir if base_dir is not None else Path.cwd()

    def config_probe_with_base():
        return config_probe(base_dir=root)

    def vision_probe_for_backend():
        return vision_probe(config=VisionProbeConfig(backend=backend))

    def reports_probe_with_base():
        return reports_probe(report_dir=root / "reports")

    return run_diagnostics(
        [
            config_probe_with_base,
            core_probe,
            vision_probe_for_backend,
            reports_probe_with_base,
        ]
    )


def main(argv: list[str] | None = None) -> int:
    """Run diagnostics and return an exit code."""

    args = parse_args(argv)

    if args.offline and args.base_dir is None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp_base = Path(tmp_dir)
            config_dir = tmp_base / "config"
            config_dir.mkdir(parents=True, exist_ok=True)
            (config_dir / "default.yaml").write_text(
                "analysis: {}\ninference: {backend: simulated}\n",
                encoding="utf-8",
            )
            results = collect(base_dir=tmp_base, backend="simulated")
    else:
        results = collect(base_dir=args.base_dir, backend=args.backend)

    print(format_results(results))

    has_failures = any(result.failed for result in results)
    return 1 if has_failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
