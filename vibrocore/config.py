from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .calibration import CalibrationProfile
from .constants import DEFAULT_DROP_LOG_INTERVAL_S, DEFAULT_QUEUE_CAPACITY
from .errors import ConfigError

LOGGER = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

DEFAULT_CONFIG: dict[str, Any] = {
    "calibration": CalibrationProfile().as_dict(),
    "engine": {
        "queue_capacity": DEFAULT_QUEUE_CAPACITY,
        "reestablish_shape_after": 0,
        "drop_log_interval_s": DEFAULT_DROP_LOG_INTERVAL_S,
    },
    "logging": {
        "level": "INFO",
        "format": DEFAULT_LOG_FORMAT,
    },
}

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def documented_default_config() -> dict[str, Any]:
    """Return runtime defaults in the shape documented by config.example.yaml."""
    return deepcopy(DEFAULT_CONFIG)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@dataclass(slots=True)
class EngineSettings:
    queue_capacity: int = DEFAULT_QUEUE_CAPACITY
    reestablish_shape_after: int = 0
    drop_log_interval_s: float = DEFAULT_DROP_LOG_INTERVAL_S

    def __post_init__(self) -> None:
        if self.queue_capacity < 1:
            LOGGER.warning(
                "engine.queue_capacity=%s is below minimum 1; clamped to 1",
                self.queue_capacity,
            )
            self.queue_capacity = 1
        if self.reestablish_shape_after < 0:
            LOGGER.warning(
                "engine.reestablish_shape_after=%s is negative; clamped to 0 (disabled)",
                self.reestablish_shape_after,
            )
            self.reestablish_shape_after = 0
        if self.drop_log_interval_s < 0:
            LOGGER.warning(
                "engine.drop_log_interval_s=%s is negative; clamped to 0",
                self.drop_log_interval_s,
            )
            self.drop_log_interval_s = 0.0


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = DEFAULT_LOG_FORMAT

    def __post_init__(self) -> None:
        level = str(self.level).upper()
        if level not in _LOG_LEVELS:
            LOGGER.warning("logging.level=%r is not a known level; using INFO", self.level)
            level = "INFO"
        self.level = level


@dataclass(slots=True)
class AppConfig:
    calibration: CalibrationProfile = field(default_factory=CalibrationProfile)
    engine: EngineSettings = field(default_factory=EngineSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    config_path: Path | None = None


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a YAML object at the top level.")
    return data


def _section(merged: dict[str, Any], name: str) -> dict[str, Any]:
    section = merged.get(name)
    if not isinstance(section, dict):
        raise ConfigError(f"{name} must be a mapping, got {type(section).__name__}")
    return section


def _as_int(section: str, key: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{section}.{key} must be an integer, got {value!r}") from None


def _as_float(section: str, key: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{section}.{key} must be a number, got {value!r}") from None


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load defaults merged with the YAML file at *config_path*.

    A missing file yields the defaults.  Malformed YAML or sections raise
    :class:`ConfigError`; an invalid calibration raises
    :class:`~vibrocore.errors.InvalidCalibrationError`.
    """
    path = config_path.resolve() if config_path is not None else None
    override = _read_config_file(path) if path is not None else {}
    merged = _deep_merge(DEFAULT_CONFIG, override)

    engine_cfg = _section(merged, "engine")
    logging_cfg = _section(merged, "logging")
    calibration = CalibrationProfile.from_dict(_section(merged, "calibration"))

    app_config = AppConfig(
        calibration=calibration,
        engine=EngineSettings(
            queue_capacity=_as_int("engine", "queue_capacity", engine_cfg.get("queue_capacity")),
            reestablish_shape_after=_as_int(
                "engine", "reestablish_shape_after", engine_cfg.get("reestablish_shape_after")
            ),
            drop_log_interval_s=_as_float(
                "engine", "drop_log_interval_s", engine_cfg.get("drop_log_interval_s")
            ),
        ),
        logging=LoggingConfig(
            level=str(logging_cfg.get("level", "INFO")),
            format=str(logging_cfg.get("format", DEFAULT_LOG_FORMAT)),
        ),
        config_path=path,
    )
    LOGGER.info(
        "Loaded config from %s (window=%d, stat_window=%d, region_size=%d, queue=%d)",
        path if path is not None else "<defaults>",
        calibration.window_size,
        calibration.stat_window,
        calibration.region_size,
        app_config.engine.queue_capacity,
    )
    return app_config
