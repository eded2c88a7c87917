"""Environment variable configuration.

Values from a ``.env`` file take precedence over the process environment,
and both take precedence over the JSON/YAML configuration file. Every value
is validated before it is applied.
"""
import os
import logging
from typing import Optional, Dict, Any, Union
from pathlib import Path
from dataclasses import dataclass

logger = logging.getLogger(__name__)

ENV_PREFIX = "FACE_DETECTOR_"


@dataclass(frozen=True)
class EnvironmentConfig:
    """Immutable environment configuration object."""

    camera_index: Optional[int] = None
    detection_mode: Optional[str] = None
    models_dir: Optional[str] = None
    log_level: Optional[str] = None
    frame_interval_ms: Optional[int] = None

    def overrides(self) -> Dict[str, Any]:
        """Only the values that were actually set."""
        return {
            key: value for key, value in (
                ("camera_index", self.camera_index),
                ("detection_mode", self.detection_mode),
                ("models_dir", self.models_dir),
                ("log_level", self.log_level),
                ("frame_interval_ms", self.frame_interval_ms),
            ) if value is not None
        }


class EnvironmentError(Exception):
    """Custom exception for environment configuration errors."""
    pass


class EnvironmentValidator:
    """Validates environment variable values."""

    VALID_MODES = {"single", "nested"}
    VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

    @classmethod
    def validate_choice(cls, value: str, choices, name: str) -> str:
        if value not in choices:
            raise EnvironmentError(f"Invalid {name} '{value}', expected one of {sorted(choices)}")
        return value

    @classmethod
    def sanitize_path(cls, path: str) -> str:
        """Normalize a directory path, rejecting shell metacharacters."""
        if not path or not path.strip():
            raise EnvironmentError("Path cannot be empty")

        for pattern in ['$', '`', ';', '|', '&', '<', '>', '"', "'"]:
            if pattern in path:
                raise EnvironmentError(f"Path contains dangerous pattern: {pattern}")

        return os.path.normpath(path)

    @classmethod
    def validate_numeric_range(cls, value: Union[str, int, float],
                              min_val: Optional[Union[int, float]] = None,
                              max_val: Optional[Union[int, float]] = None,
                              value_type: type = int) -> Union[int, float]:
        """Validate numeric value within specified range.

        Raises:
            EnvironmentError: If validation fails
        """
        try:
            numeric_value = value_type(value)
        except (ValueError, TypeError):
            raise EnvironmentError(f"Invalid {value_type.__name__} value: {value}")

        if min_val is not None and numeric_value < min_val:
            raise EnvironmentError(f"Value {numeric_value} below minimum {min_val}")

        if max_val is not None and numeric_value > max_val:
            raise EnvironmentError(f"Value {numeric_value} above maximum {max_val}")

        return numeric_value


def load_env_file(env_path: Optional[str] = None) -> Dict[str, str]:
    """Load KEY=VALUE pairs from a .env file.

    Args:
        env_path: Path to .env file. Defaults to .env in current directory.
    """
    if env_path is None:
        env_path = ".env"

    env_vars = {}
    env_file_path = Path(env_path)

    if not env_file_path.exists():
        logger.debug(f"Environment file {env_path} not found, using system environment only")
        return env_vars

    with open(env_file_path, 'r', encoding='utf-8') as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()

            if not line or line.startswith('#'):
                continue

            if '=' in line:
                key, value = line.split('=', 1)
                key = key.strip()
                value = value.strip()

                if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                    value = value[1:-1]

                env_vars[key] = value
            else:
                logger.warning(f"Invalid line format in {env_path}:{line_num}: {line}")

    logger.info(f"Loaded {len(env_vars)} variables from {env_path}")
    return env_vars


def get_env_var(key: str, default: Optional[str] = None,
                env_vars: Optional[Dict[str, str]] = None) -> Optional[str]:
    """Get a prefixed environment variable, .env values first."""
    name = f"{ENV_PREFIX}{key}"
    if env_vars and name in env_vars:
        value = env_vars[name]
    else:
        value = os.getenv(name, default)

    if value is not None and value.strip() == "":
        return default
    return value


def load_environment_config(env_file_path: Optional[str] = None) -> EnvironmentConfig:
    """Load and validate environment configuration.

    Raises:
        EnvironmentError: If a set variable holds an invalid value
    """
    env_vars = load_env_file(env_file_path)
    validator = EnvironmentValidator()

    camera_index = get_env_var("CAMERA_INDEX", env_vars=env_vars)
    mode = get_env_var("MODE", env_vars=env_vars)
    models_dir = get_env_var("MODELS_DIR", env_vars=env_vars)
    log_level = get_env_var("LOG_LEVEL", env_vars=env_vars)
    interval = get_env_var("FRAME_INTERVAL_MS", env_vars=env_vars)

    config = EnvironmentConfig(
        camera_index=(
            validator.validate_numeric_range(camera_index, -1, 99) if camera_index is not None else None
        ),
        detection_mode=(
            validator.validate_choice(mode.lower(), validator.VALID_MODES, "mode") if mode else None
        ),
        models_dir=validator.sanitize_path(models_dir) if models_dir else None,
        log_level=(
            validator.validate_choice(log_level.upper(), validator.VALID_LOG_LEVELS, "log level")
            if log_level else None
        ),
        frame_interval_ms=(
            validator.validate_numeric_range(interval, 0, 10000) if interval is not None else None
        ),
    )

    if config.overrides():
        logger.info(f"Environment overrides: {sorted(config.overrides())}")
    return config
