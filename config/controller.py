"""Configuration controller for YAML-based settings."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


SECTION_DEFAULTS: dict[str, dict[str, Any]] = {
    "analysis": {
        "period_s": 2.0,
        "tick_interval_s": 1.0,
    },
    "inference": {
        "backend": "yolo",
        "model": "yolov8n.pt",
        "device": "cpu",
        "min_confidence": 0.5,
        "timeout_s": 10.0,
    },
    "report": {
        "directory": "reports",
    },
    "feed": {
        "recent_limit": 10,
    },
    "alerts": {
        "cooldown_s": 30.0,
        "ttl_s": 120.0,
    },
    "simulation": {
        "tick_interval_s": 3.0,
        "detection_probability": 0.15,
        "seed": None,
    },
}


@dataclass(frozen=True)
class ConfigPaths:
    """Filesystem paths for configuration files."""

    config_dir: Path
    config_file: Path
    override_file: Path


def _default_config_dir() -> Path:
    local_dir = Path("config")
    if (local_dir / "default.yaml").exists():
        return local_dir
    return Path(__file__).resolve().parent


class ConfigController:
    """Singleton controller for loading and updating configuration."""

    _instance: "ConfigController | None" = None

    def __init__(self, config_file: str = "default.yaml", config_dir: Path | None = None) -> None:
        if ConfigController._instance is not None:
            raise RuntimeError("You cannot create another ConfigController class")

        config_dir = config_dir if config_dir is not None else _default_config_dir()
        self.paths = ConfigPaths(
            config_dir=config_dir,
            config_file=config_dir / config_file,
            override_file=config_dir / "override.yaml",
        )
        self.config: dict[str, Any] = {}
        self.load_config()
        ConfigController._instance = self

    @classmethod
    def get_instance(cls) -> "ConfigController":
        """Return the singleton instance of the controller."""

        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def load_config(self) -> None:
        """Load configuration from default and override YAML files."""

        with self.paths.config_file.open("r", encoding="utf-8") as file:
            config = yaml.safe_load(file) or {}

        if self.paths.override_file.exists():
            with self.paths.override_file.open("r", encoding="utf-8") as file:
                override_config = yaml.safe_load(file) or {}
            if override_config:
                config = self._deep_merge(config, override_config)

        self.config = self._normalize_sections(config)

    def save_config(self, config: dict[str, Any]) -> None:
        """Persist configuration to override.yaml, archiving previous overrides."""

        if self.paths.override_file.exists():
            archive_index = 1
            archive_file = self._archive_path(archive_index)
            while archive_file.exists():
                archive_index += 1
                archive_file = self._archive_path(archive_index)
            self.paths.override_file.rename(archive_file)

        with self.paths.override_file.open("w", encoding="utf-8") as file:
            yaml.safe_dump(config, file)

    def get_config(self) -> dict[str, Any]:
        """Return the currently loaded configuration."""

        return dict(self.config)

    def get_section(self, name: str) -> dict[str, Any]:
        """Return a copy of one configuration section."""

        return dict(self.config.get(name) or {})

    def set_config(self, config: dict[str, Any]) -> None:
        """Set and persist configuration values."""

        self.config = self._normalize_sections(config)
        self.save_config(self.config)

    def _archive_path(self, index: int) -> Path:
        """Return the archive path for a given override index."""

        filename = f"override_{index:04d}.yaml"
        return self.paths.config_dir / filename

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge dictionaries, overriding base values with override values."""

        merged = dict(base)
        for key, value in override.items():
            if (
                key in merged
                and isinstance(merged[key], dict)
                and isinstance(value, dict)
            ):
                merged[key] = self._deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _normalize_sections(self, config: dict[str, Any]) -> dict[str, Any]:
        """Fill section defaults and fold flat ``<section>_<key>`` entries into sections."""

        normalized = dict(config)
        for section, defaults in SECTION_DEFAULTS.items():
            section_cfg = dict(normalized.get(section) or {})
            for key, default in defaults.items():
                flat_key = f"{section}_{key}"
                if key not in section_cfg:
                    section_cfg[key] = normalized.pop(flat_key, default)
                else:
                    normalized.pop(flat_key, None)
            normalized[section] = section_cfg

        normalized.setdefault("logging_level", "INFO")
        normalized.setdefault("file_logging_enabled", False)
        normalized.setdefault("log_file", "logs/railwatch.log")
        return normalized
