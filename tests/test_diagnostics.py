"""Tests for diagnostics probes and the runner."""

from __future__ import annotations

from pathlib import Path

from config.diagnostics import probe as config_probe
from core.diagnostics import probe as core_probe
from diagnostics.models import DiagnosticResult, DiagnosticStatus
from diagnostics.run import collect, main
from diagnostics.runner import format_results, run_diagnostics
from services.diagnostics import probe as reports_probe
from vision.diagnostics import VisionProbeConfig, probe as vision_probe


def test_config_probe_offline(tmp_path: Path) -> None:
    """Config probe should pass with the core sections present."""

    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "default.yaml").write_text("analysis: {}\ninference: {}\n", encoding="utf-8")

    result = config_probe(base_dir=tmp_path)
    assert result.status is DiagnosticStatus.PASS


def test_config_probe_warns_on_missing_sections(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "default.yaml").write_text("{}", encoding="utf-8")

    result = config_probe(base_dir=tmp_path)
    assert result.status is DiagnosticStatus.WARN
    assert "analysis" in result.details


def test_config_probe_fails_without_default(tmp_path: Path) -> None:
    assert config_probe(base_dir=tmp_path).status is DiagnosticStatus.FAIL


def test_config_probe_fails_on_invalid_yaml(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "default.yaml").write_text("analysis: [unclosed\n", encoding="utf-8")

    assert config_probe(base_dir=tmp_path).status is DiagnosticStatus.FAIL


def test_core_probe() -> None:
    """Core probe should pass when rich logging is available."""

    result = core_probe()
    assert result.status is DiagnosticStatus.PASS


def test_vision_probe_with_all_modules() -> None:
    result = vision_probe(available_modules={"numpy", "cv2", "ultralytics"})

    assert result.status is DiagnosticStatus.PASS


def test_vision_probe_missing_ultralytics() -> None:
    warn = vision_probe(available_modules={"numpy", "cv2"})
    strict = vision_probe(
        config=VisionProbeConfig(require_all=True),
        available_modules={"numpy", "cv2"},
    )
    simulated = vision_probe(
        config=VisionProbeConfig(backend="simulated"),
        available_modules={"numpy", "cv2"},
    )

    assert warn.status is DiagnosticStatus.WARN
    assert "ultralytics" in warn.details
    assert strict.status is DiagnosticStatus.FAIL
    assert simulated.status is DiagnosticStatus.PASS


def test_reports_probe_writable_directory(tmp_path: Path) -> None:
    assert reports_probe(report_dir=tmp_path / "reports").status is DiagnosticStatus.PASS


def test_reports_probe_fails_for_file(tmp_path: Path) -> None:
    target = tmp_path / "reports"
    target.write_text("not a directory", encoding="utf-8")

    assert reports_probe(report_dir=target).status is DiagnosticStatus.FAIL


def test_runner_converts_exceptions() -> None:
    def broken_probe() -> DiagnosticResult:
        raise RuntimeError("boom")

    results = run_diagnostics([broken_probe])

    assert results[0].status is DiagnosticStatus.FAIL
    assert results[0].name == "broken_probe"
    assert "[FAIL] broken_probe" in format_results(results)


def test_collect_runs_every_probe(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "default.yaml").write_text("analysis: {}\ninference: {}\n", encoding="utf-8")

    results = collect(base_dir=tmp_path, backend="simulated")

    assert [result.name for result in results] == ["config", "core", "vision", "reports"]


def test_offline_main_exit_code(capsys) -> None:
    exit_code = main(["--offline"])

    assert "Diagnostics report" in capsys.readouterr().out
    assert exit_code in (0, 1)
