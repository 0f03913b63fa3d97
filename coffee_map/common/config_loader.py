"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from coffee_map.common.errors import ConfigError
from coffee_map.common.fs import read_yaml
from coffee_map.common.schema import validate_settings_config

SETTINGS_FILENAME = "coffee_map.yml"


@dataclass(frozen=True)
class ConfigBundle:
    settings: dict
    config_path: Path


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path)
    if not isinstance(base, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    if not isinstance(overlay, dict):
        raise ConfigError(f"Overlay config must contain a mapping: {overlay_path}")
    return _deep_merge(base, overlay)


def load_all_configs(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ConfigBundle:
    path = config_dir / SETTINGS_FILENAME
    overlay_path = None
    if overlay_config_dir is not None:
        overlay_path = overlay_config_dir / SETTINGS_FILENAME
    settings = validate_settings_config(
        _load_yaml_with_overlay(path, overlay_path),
        allow_unknown=allow_unknown,
    )
    return ConfigBundle(settings=settings, config_path=path)


def apply_overrides(settings: dict, overrides: dict[str, dict[str, Any]]) -> dict:
    """Return a copy of ``settings`` with non-None CLI overrides merged per section."""
    cleaned = {
        section: {key: value for key, value in values.items() if value is not None}
        for section, values in overrides.items()
    }
    return validate_settings_config(_deep_merge(settings, cleaned), allow_unknown=True)


def resolve_dir(value: str | Path, data_dir: Path) -> Path:
    path = Path(value)
    if path.is_absolute():
        return path
    return data_dir / path
