"""Diagnostics routines for the configuration subsystem."""

from __future__ import annotations

from pathlib import Path

import yaml

from diagnostics.models import DiagnosticResult, DiagnosticStatus

REQUIRED_SECTIONS = ("analysis", "inference")


def probe(base_dir: Path | None = None) -> DiagnosticResult:
    """Run a configuration probe to validate config file availability.

    Args:
        base_dir: Optional base directory for offline testing.

    Returns:
        Diagnostic result indicating config readiness.
    """

    name = "config"
    root_dir = base_dir if base_dir is not None else Path.cwd()
    config_dir = root_dir / "config"
    default_config = config_dir / "default.yaml"
    override_config = config_dir / "override.yaml"

    if not default_config.exists():
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Missing default config at {default_config}",
        )

    try:
        loaded = yaml.safe_load(default_config.read_text(encoding="utf-8")) or {}
        if override_config.exists():
            yaml.safe_load(override_config.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Config unreadable: {exc}",
        )

    if not isinstance(loaded, dict):
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Default config at {default_config} is not a mapping",
        )

    missing = [section for section in REQUIRED_SECTIONS if section not in loaded]
    if missing:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.WARN,
            details=f"Using built-in defaults for: {', '.join(missing)}",
        )

    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details=f"Config files readable at {config_dir}",
    )
