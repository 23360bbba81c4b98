"""GestureTree configuration.

All tunables live in one YAML file; every key is optional and falls back
to the defaults below:

    classifier:
      extension_ratio: 0.8
      open_min_extended: 4
      closed_max_extended: 1
    coordinator:
      cooldown_seconds: 1.0
    tree:
      layers: 8
    physics:
      fade_step: 0.02
    display:
      width: 1280
      height: 720
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Optional

import yaml

from gesture_tree.gestures import ExtensionRules
from gesture_tree.particles import FieldPhysics, TreeShape

logger = logging.getLogger("gesture_tree.config")


class ConfigError(ValueError):
    """Raised for unreadable or invalid configuration."""


@dataclass
class ClassifierConfig(ExtensionRules):
    unknown_resets_edge: bool = True

    def rules(self) -> ExtensionRules:
        return ExtensionRules(
            extension_ratio=self.extension_ratio,
            open_min_extended=self.open_min_extended,
            closed_max_extended=self.closed_max_extended,
        )


@dataclass
class CoordinatorConfig:
    cooldown_seconds: float = 1.0


@dataclass
class DetectorConfig:
    model_complexity: int = 1
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5


@dataclass
class DisplayConfig:
    width: int = 1280
    height: int = 720
    fps: int = 60
    camera_index: int = 0
    mirror: bool = True
    show_camera: bool = True


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8765
    camera_index: int = 0
    fps: int = 30


@dataclass
class AppConfig:
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    coordinator: CoordinatorConfig = field(default_factory=CoordinatorConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    tree: TreeShape = field(default_factory=TreeShape)
    physics: FieldPhysics = field(default_factory=FieldPhysics)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    def validate(self):
        try:
            self._check()
        except ConfigError:
            raise
        except (TypeError, ValueError) as e:
            # wrong value types surface as TypeError from the comparisons
            raise ConfigError(f"Invalid configuration: {e}") from e

    def _check(self):
        self.classifier.validate()
        self.tree.validate()
        if self.coordinator.cooldown_seconds < 0:
            raise ConfigError("coordinator.cooldown_seconds must be >= 0")
        if self.display.width <= 0 or self.display.height <= 0:
            raise ConfigError("display size must be positive")
        if self.display.fps <= 0 or self.server.fps <= 0:
            raise ConfigError("fps must be positive")
        if not 0 < self.physics.shrink_factor <= 1:
            raise ConfigError("physics.shrink_factor must be in (0, 1]")
        if self.physics.fade_step <= 0:
            raise ConfigError("physics.fade_step must be positive")

    def to_dict(self) -> dict:
        return asdict(self)


def _build_section(cls, section: str, data: dict):
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", section, ", ".join(sorted(unknown)))
    try:
        return cls(**{k: v for k, v in data.items() if k in known})
    except TypeError as e:
        raise ConfigError(f"Invalid {section} section: {e}") from e


def config_from_dict(data: dict) -> AppConfig:
    sections = {f.name: f for f in fields(AppConfig)}
    kwargs = {}
    for name, value in (data or {}).items():
        if name not in sections:
            logger.warning("Ignoring unknown config section: %s", name)
            continue
        if not isinstance(value, dict):
            raise ConfigError(f"Section {name!r} must be a mapping")
        section_cls = sections[name].default_factory
        kwargs[name] = _build_section(section_cls, name, value)

    config = AppConfig(**kwargs)
    config.validate()
    return config


def load_config(path: Optional[str | Path] = None) -> AppConfig:
    """Load configuration from YAML, or return defaults when no path is given."""
    if path is None:
        return AppConfig()

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")

    logger.info("Loaded config from %s", path)
    return config_from_dict(data)


def save_config(config: AppConfig, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    return path
