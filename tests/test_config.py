"""Tests for configuration loading and normalization."""

from __future__ import annotations

from pathlib import Path

import yaml

from analysis.scheduler import SchedulerSettings
from config.controller import ConfigController
from services.simulation import SimulationSettings


def _reset_singletons() -> None:
    ConfigController._instance = None


def _write_default(tmp_path: Path, text: str) -> Path:
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "default.yaml").write_text(text, encoding="utf-8")
    return config_dir


def test_config_controller_fills_section_defaults(tmp_path: Path, monkeypatch) -> None:
    _write_default(tmp_path, "logging_level: DEBUG\n")
    monkeypatch.chdir(tmp_path)
    _reset_singletons()

    config = ConfigController.get_instance().get_config()
    _reset_singletons()

    assert config["logging_level"] == "DEBUG"
    assert config["analysis"]["period_s"] == 2.0
    assert config["inference"]["backend"] == "yolo"
    assert config["inference"]["min_confidence"] == 0.5
    assert config["feed"]["recent_limit"] == 10
    assert config["file_logging_enabled"] is False


def test_flat_keys_fold_into_sections(tmp_path: Path, monkeypatch) -> None:
    _write_default(tmp_path, "analysis_period_s: 4.0\ninference_backend: simulated\n")
    monkeypatch.chdir(tmp_path)
    _reset_singletons()

    config = ConfigController.get_instance().get_config()
    _reset_singletons()

    assert config["analysis"]["period_s"] == 4.0
    assert config["inference"]["backend"] == "simulated"
    assert "analysis_period_s" not in config


def test_override_is_deep_merged(tmp_path: Path, monkeypatch) -> None:
    config_dir = _write_default(tmp_path, "analysis:\n  period_s: 2.0\n  tick_interval_s: 1.0\n")
    (config_dir / "override.yaml").write_text("analysis:\n  period_s: 5.0\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    _reset_singletons()

    controller = ConfigController.get_instance()
    settings = SchedulerSettings.from_config(controller.get_config())
    _reset_singletons()

    assert settings.period_s == 5.0
    assert settings.tick_interval_s == 1.0
    assert controller.get_section("analysis")["period_s"] == 5.0


def test_set_config_archives_previous_override(tmp_path: Path) -> None:
    config_dir = _write_default(tmp_path, "{}\n")
    (config_dir / "override.yaml").write_text("feed:\n  recent_limit: 5\n", encoding="utf-8")
    _reset_singletons()

    controller = ConfigController(config_dir=config_dir)
    controller.set_config({"feed": {"recent_limit": 20}})
    _reset_singletons()

    assert (config_dir / "override_0001.yaml").exists()
    saved = yaml.safe_load((config_dir / "override.yaml").read_text(encoding="utf-8"))
    assert saved["feed"]["recent_limit"] == 20


def test_packaged_default_config_defines_tracks() -> None:
    default_path = Path(__file__).resolve().parents[1] / "config" / "default.yaml"
    config = yaml.safe_load(default_path.read_text(encoding="utf-8"))

    settings = SimulationSettings.from_config(config)

    assert len(settings.tracks) == 8
    assert settings.tracks[0].track_id == "track-1"
    assert settings.tracks[0].camera == "CAM-001"
    assert settings.tracks[1].track_number == "B-2"
    assert settings.detection_probability == 0.15
