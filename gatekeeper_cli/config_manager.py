"""Project configuration loader using TOML files."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from .config import (
    DEFAULT_ENGINE,
    DEFAULT_LAYOUT,
    DEFAULT_THRESHOLDS,
    LAYER_RULES,
    config_path_for,
)

logger = logging.getLogger(__name__)

SECTIONS = ("layout", "engine", "thresholds", "layers")


class ConfigError(ValueError):
    """Raised when ``.gatekeeper.toml`` cannot be used."""


@dataclass
class ProjectConfig:
    """Effective configuration for one project root."""
    layout: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_LAYOUT))
    engine: Dict[str, Any] = field(default_factory=lambda: copy.deepcopy(DEFAULT_ENGINE))
    thresholds: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_THRESHOLDS))
    layers: Dict[str, List[str]] = field(default_factory=lambda: copy.deepcopy(LAYER_RULES))
    source: Optional[Path] = None

    @property
    def report_file(self) -> str:
        return str(self.engine["report_file"])

    @property
    def excluded_dirs(self) -> List[str]:
        return list(self.engine["excluded_dirs"])

    @property
    def extensions(self) -> List[str]:
        return list(self.engine["extensions"])

    @property
    def default_extension(self) -> str:
        return str(self.engine["default_extension"])

    @property
    def entry_points(self) -> List[str]:
        return list(self.engine["entry_points"])

    def threshold(self, name: str) -> float:
        return self.thresholds[name]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layout": dict(self.layout),
            "engine": copy.deepcopy(self.engine),
            "thresholds": dict(self.thresholds),
            "layers": copy.deepcopy(self.layers),
        }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _same_kind(expected: Any, value: Any) -> bool:
    if _is_number(expected):
        return _is_number(value)
    return isinstance(value, type(expected))


def _merge_section(name: str, defaults: Dict[str, Any], values: Any) -> Dict[str, Any]:
    if not isinstance(values, dict):
        raise ConfigError(f"[{name}] must be a table")
    merged = copy.deepcopy(defaults)
    for key, value in values.items():
        if key not in defaults:
            raise ConfigError(f"Unknown key '{key}' in [{name}]")
        if not _same_kind(defaults[key], value):
            raise ConfigError(
                f"[{name}].{key} must be {type(defaults[key]).__name__}, got {type(value).__name__}"
            )
        merged[key] = value
    return merged


def parse_config(data: Dict[str, Any], source: Optional[Path] = None) -> ProjectConfig:
    """Build a :class:`ProjectConfig` from already-decoded TOML data.

    Args:
        data: Mapping of section name to table
        source: File the data came from, kept for display

    Returns:
        Configuration with every unspecified value taken from the defaults

    Raises:
        ConfigError: On unknown sections, unknown keys or wrongly typed values
    """
    unknown = sorted(set(data) - set(SECTIONS))
    if unknown:
        raise ConfigError(f"Unknown section(s): {', '.join(unknown)}")

    cfg = ProjectConfig(source=source)
    if "layout" in data:
        cfg.layout = _merge_section("layout", cfg.layout, data["layout"])
    if "engine" in data:
        cfg.engine = _merge_section("engine", cfg.engine, data["engine"])
    if "thresholds" in data:
        cfg.thresholds = _merge_section("thresholds", cfg.thresholds, data["thresholds"])
    if "layers" in data:
        layers = data["layers"]
        if not isinstance(layers, dict):
            raise ConfigError("[layers] must be a table")
        for layer, allowed in layers.items():
            if layer not in cfg.layers:
                raise ConfigError(f"Unknown layer '{layer}' in [layers]")
            if not isinstance(allowed, list) or not all(isinstance(a, str) for a in allowed):
                raise ConfigError(f"[layers].{layer} must be a list of layer names")
            cfg.layers[layer] = list(allowed)
    return cfg


def load_config(root: Path) -> ProjectConfig:
    """Load configuration for a project root.

    A missing file yields the defaults. ``GATEKEEPER_CONFIG`` points at an
    alternative file.

    Raises:
        ConfigError: If the file is not valid TOML or has unknown keys
    """
    path = config_path_for(root)
    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
        return ProjectConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = toml.load(f)
    except toml.TomlDecodeError as exc:
        raise ConfigError(f"Malformed config file {path}: {exc}") from exc

    logger.debug("Loaded config from %s", path)
    return parse_config(data, source=path)


def save_config(cfg: ProjectConfig, path: Path) -> None:
    """Write ``cfg`` to ``path`` as TOML."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        toml.dump(cfg.to_dict(), f)
