"""Configuration dataclass and loading utilities.

Provides a strongly-typed configuration object that is injected into the
services instead of a global module-level dictionary. Values are resolved
in this order, later wins: built-in defaults, the config file (JSON, or YAML
for ``.yaml``/``.yml``), environment variables.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional
import json, os, logging

import yaml

from .defaults import DEFAULT_CONFIG
from .env_config import load_environment_config, EnvironmentError
from ..core.entities import DetectionMode, DetectionParameters
from ..core.exceptions import ConfigError

logger = logging.getLogger(__name__)

_NUMERIC_FIELDS = {
    "camera_index": int,
    "camera_width": int,
    "camera_height": int,
    "camera_fps": int,
    "max_consecutive_failures": int,
    "face_scale_factor": float,
    "face_min_neighbors": int,
    "face_min_size": int,
    "eye_scale_factor": float,
    "eye_min_neighbors": int,
    "eye_min_size": int,
    "frame_interval_ms": int,
    "sink_queue_size": int,
    "shutdown_timeout": float,
    "display_poll_ms": int,
}


@dataclass(slots=True)
class Config:
    # Camera
    camera_index: int = DEFAULT_CONFIG["camera_index"]
    camera_width: int = DEFAULT_CONFIG["camera_width"]
    camera_height: int = DEFAULT_CONFIG["camera_height"]
    camera_fps: int = DEFAULT_CONFIG["camera_fps"]
    max_consecutive_failures: int = DEFAULT_CONFIG["max_consecutive_failures"]

    # Cascade models
    models_dir: str = DEFAULT_CONFIG["models_dir"]
    face_model: str = DEFAULT_CONFIG["face_model"]
    eye_model: str = DEFAULT_CONFIG["eye_model"]
    detection_mode: str = DEFAULT_CONFIG["detection_mode"]

    face_scale_factor: float = DEFAULT_CONFIG["face_scale_factor"]
    face_min_neighbors: int = DEFAULT_CONFIG["face_min_neighbors"]
    face_min_size: int = DEFAULT_CONFIG["face_min_size"]
    eye_scale_factor: float = DEFAULT_CONFIG["eye_scale_factor"]
    eye_min_neighbors: int = DEFAULT_CONFIG["eye_min_neighbors"]
    eye_min_size: int = DEFAULT_CONFIG["eye_min_size"]

    # Pipeline
    frame_interval_ms: int = DEFAULT_CONFIG["frame_interval_ms"]
    sink_queue_size: int = DEFAULT_CONFIG["sink_queue_size"]
    shutdown_timeout: float = DEFAULT_CONFIG["shutdown_timeout"]

    # Presentation
    window_title: str = DEFAULT_CONFIG["window_title"]
    summary_noun: str = DEFAULT_CONFIG["summary_noun"]
    display_poll_ms: int = DEFAULT_CONFIG["display_poll_ms"]

    # Debug and logging
    debug: bool = DEFAULT_CONFIG["debug"]
    log_level: str = DEFAULT_CONFIG["log_level"]
    log_dir: str = DEFAULT_CONFIG["log_dir"]
    enable_file_logging: bool = DEFAULT_CONFIG["enable_file_logging"]
    structured_logging: bool = DEFAULT_CONFIG["structured_logging"]

    # Arbitrary extra values retained for forward compatibility
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        # merge extra keys at top-level for saving
        extra = d.pop("extra", {})
        d.update(extra)
        return d

    def get(self, key: str, default: Any = None) -> Any:
        if key in Config.__dataclass_fields__ and key != "extra":
            return getattr(self, key)
        return self.extra.get(key, default)

    @property
    def mode(self) -> DetectionMode:
        return DetectionMode(self.detection_mode)

    @property
    def frame_interval(self) -> float:
        """Inter-cycle pause in seconds."""
        return self.frame_interval_ms / 1000.0

    def face_parameters(self) -> DetectionParameters:
        return DetectionParameters(
            scale_factor=float(self.face_scale_factor),
            min_neighbors=int(self.face_min_neighbors),
            min_size=(int(self.face_min_size), int(self.face_min_size)),
        )

    def eye_parameters(self) -> DetectionParameters:
        return DetectionParameters(
            scale_factor=float(self.eye_scale_factor),
            min_neighbors=int(self.eye_min_neighbors),
            min_size=(int(self.eye_min_size), int(self.eye_min_size)),
        )

    def validate(self) -> None:
        """Coerce numeric values and raise ConfigError if any cannot drive the pipeline."""
        for name, value_type in _NUMERIC_FIELDS.items():
            value = getattr(self, name)
            try:
                if isinstance(value, bool):
                    raise TypeError(f"expected {value_type.__name__}, got bool")
                setattr(self, name, value_type(value))
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid value for {name}: {value!r} ({e})") from e

        if not isinstance(self.log_level, str):
            raise ConfigError(f"log_level must be a string, got {self.log_level!r}")

        try:
            DetectionMode(self.detection_mode)
        except ValueError:
            raise ConfigError(f"Unknown detection_mode '{self.detection_mode}' (expected 'single' or 'nested')")

        try:
            self.face_parameters()
            self.eye_parameters()
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid detection parameters: {e}") from e

        if self.frame_interval_ms < 0:
            raise ConfigError("frame_interval_ms must be non-negative")
        if self.max_consecutive_failures < 1:
            raise ConfigError("max_consecutive_failures must be at least 1")
        if self.sink_queue_size < 0:
            raise ConfigError("sink_queue_size must be non-negative")
        if self.camera_index < -1:
            raise ConfigError("camera_index must be -1 (any) or a device index")


def _read_config_file(path: str) -> Dict[str, Any]:
    """Read a JSON or YAML mapping, falling back to {} on any problem."""
    if not os.path.isfile(path):
        logger.info(f"Configuration file '{path}' does not exist. Using defaults.")
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.endswith((".yaml", ".yml")):
                loaded_data = yaml.safe_load(f)
            else:
                loaded_data = json.load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        logger.error(f"Failed to parse configuration file '{path}': {e}. Using defaults.")
        return {}
    except PermissionError:
        logger.error(f"Permission denied reading configuration file '{path}'. Using defaults.")
        return {}

    if loaded_data is None:
        logger.warning(f"Configuration file '{path}' is empty, using defaults")
        return {}
    if not isinstance(loaded_data, dict):
        logger.error(f"Configuration file '{path}' does not contain a mapping, using defaults")
        return {}

    logger.info(f"Successfully loaded configuration from '{path}'")
    return loaded_data


def load_config(path: str = "config.json", env_file: Optional[str] = None) -> Config:
    """Load configuration from file and environment.

    Args:
        path: Path to a JSON or YAML config file
        env_file: Path to .env file (optional)

    Returns:
        Config: Loaded and validated configuration

    Raises:
        ConfigError: If the merged values are invalid
    """
    data = _read_config_file(path)
    merged = {**DEFAULT_CONFIG, **data}

    try:
        env_config = load_environment_config(env_file)
        merged.update(env_config.overrides())
    except EnvironmentError as e:
        logger.warning(f"Environment configuration ignored: {e}")

    fields = [k for k in Config.__dataclass_fields__ if k != "extra"]
    extra = {k: v for k, v in merged.items() if k not in fields}
    if extra:
        logger.info(f"Found extra configuration keys: {list(extra.keys())}")

    cfg = Config(**{k: merged[k] for k in fields}, extra=extra)
    cfg.validate()
    return cfg


def save_config(cfg: Config, path: str = "config.json") -> None:
    """Save configuration as JSON (or YAML for .yaml/.yml paths)."""
    config_dict = cfg.to_dict()
    with open(path, "w", encoding="utf-8") as f:
        if path.endswith((".yaml", ".yml")):
            yaml.safe_dump(config_dict, f, sort_keys=False)
        else:
            json.dump(config_dict, f, indent=2, ensure_ascii=False)
    logger.info(f"Configuration saved successfully to '{path}'")
