"""
Configuration management for the auto-tagging pipeline.

Loads and validates configuration from YAML files with environment
variable interpolation support.
"""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from autotag.utils.errors import ConfigurationError


class ConfigManager:
    """
    Manages application configuration loaded from YAML files.

    Features:
    - YAML configuration loading
    - Environment variable interpolation (${VAR_NAME})
    - Nested key access with dot notation
    - Default value support
    - Configuration validation
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration manager.

        Args:
            config_dict: Optional pre-loaded configuration dictionary
        """
        self._config: Dict[str, Any] = config_dict or {}
        self._env_pattern = re.compile(r'\$\{([^}]+)\}')

    @classmethod
    def from_file(cls, file_path: Path) -> "ConfigManager":
        """
        Create ConfigManager from YAML file.

        Args:
            file_path: Path to YAML configuration file

        Returns:
            ConfigManager: Initialized with file contents

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        if not file_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {file_path}",
                config_key=str(file_path)
            )

        try:
            with open(file_path, 'r') as f:
                config_dict = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML configuration: {e}",
                config_key=str(file_path)
            )

        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                "Configuration root must be a mapping",
                config_key=str(file_path)
            )

        manager = cls(config_dict)
        manager._interpolate_env_vars()
        return manager

    def _interpolate_env_vars(self) -> None:
        """Replace ${ENV_VAR} patterns with environment variable values."""
        self._config = self._interpolate(self._config)

    def _interpolate(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: self._interpolate(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._interpolate(v) for v in value]
        if isinstance(value, str):
            return self._interpolate_string(value)
        return value

    def _interpolate_string(self, s: str) -> str:
        """Replace ${ENV_VAR} with environment variable value."""
        def replace(match: re.Match) -> str:
            value = os.environ.get(match.group(1))
            if value is None:
                return match.group(0)  # Keep original if not found
            return value

        return self._env_pattern.sub(replace, s)

    def get(
        self,
        key: str,
        default: Any = None,
        required: bool = False
    ) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (supports dot notation: "analyzers.key.frame_size")
            default: Default value if key not found
            required: If True, raise error when key not found

        Returns:
            Configuration value or default

        Raises:
            ConfigurationError: If required key is not found
        """
        value: Any = self._config

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                if required:
                    raise ConfigurationError(
                        f"Required configuration key not found: {key}",
                        config_key=key
                    )
                return default

        return value

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary."""
        return copy.deepcopy(self._config)

    def validate(self, schema: Dict[str, Any]) -> None:
        """
        Validate configuration against a schema.

        Schema format:
            {
                "reconcile.key_confidence_threshold": {"type": float, "required": True},
                "performance.max_workers": {"type": int},
                "logging.format": {"type": str, "choices": ("json", "text")}
            }

        Raises:
            ConfigurationError: If validation fails
        """
        for key, rules in schema.items():
            value = self.get(key)
            expected_type = rules.get("type")

            if value is None:
                if rules.get("required", False):
                    raise ConfigurationError(
                        f"Required configuration missing: {key}",
                        config_key=key
                    )
                continue

            if expected_type and not isinstance(value, expected_type):
                raise ConfigurationError(
                    f"Invalid type for {key}: expected {_type_name(expected_type)}, "
                    f"got {type(value).__name__}",
                    config_key=key
                )

            choices = rules.get("choices")
            if choices and value not in choices:
                raise ConfigurationError(
                    f"Invalid value for {key}: {value!r} (expected one of {', '.join(choices)})",
                    config_key=key
                )


def _type_name(expected_type: Any) -> str:
    if isinstance(expected_type, tuple):
        return " or ".join(t.__name__ for t in expected_type)
    return expected_type.__name__


CONFIG_SCHEMA: Dict[str, Any] = {
    "audio.target_sample_rate": {"type": int, "required": True},
    "audio.max_duration": {"type": (int, float), "required": True},
    "analyzers.key.frame_size": {"type": int},
    "analyzers.key.hop_size": {"type": int},
    "analyzers.key.max_frames": {"type": int},
    "reconcile.bpm_confidence_threshold": {"type": (int, float)},
    "reconcile.key_confidence_threshold": {"type": (int, float)},
    "reconcile.max_tags": {"type": int},
    "logging.level": {"type": str},
    "logging.format": {"type": str, "choices": ("json", "text")},
    "performance.max_workers": {"type": int},
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from file or return defaults.

    File values are layered over the defaults, so a config file only
    needs to name what it changes.

    Args:
        config_path: Optional path to config file.
                    If None, tries "config/config.yaml"

    Returns:
        Dict[str, Any]: Configuration dictionary
    """
    if config_path is None:
        default_paths = [
            Path("config/config.yaml"),
            Path("config.yaml"),
            Path(__file__).parent.parent.parent / "config" / "config.yaml",
        ]

        for path in default_paths:
            if path.exists():
                config_path = str(path)
                break

    if config_path is None:
        return get_default_config()

    manager = ConfigManager.from_file(Path(config_path))
    merged = ConfigManager(_deep_merge(get_default_config(), manager.to_dict()))
    merged.validate(CONFIG_SCHEMA)
    return merged.to_dict()


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def get_default_config() -> Dict[str, Any]:
    """Return default configuration values."""
    return {
        "audio": {
            "target_sample_rate": 22050,
            "max_duration": 60.0,
        },
        "analyzers": {
            "levels": {
                "envelope_seconds": 0.01,
            },
            "tempo": {
                "max_seconds": 60.0,
                "envelope_seconds": 0.02,
                "target_rate": 200,
                "min_bpm": 60,
                "max_bpm": 200,
            },
            "key": {
                "max_seconds": 12.0,
                "frame_size": 4096,
                "hop_size": 2048,
                "min_freq": 50.0,
                "max_freq": 1400.0,
                "max_frames": 20,
                "harmonics": 5,
            },
        },
        "reconcile": {
            "bpm_confidence_threshold": 0.3,
            "key_confidence_threshold": 0.3,
            "placeholder_type": "audio",
            "max_tags": 20,
        },
        "uploads": {
            "preview_filename": "preview.mp3",
            "audio_extensions": [
                ".wav", ".wave", ".aif", ".aiff", ".flac",
                ".mp3", ".m4a", ".aac", ".ogg", ".oga",
            ],
        },
        "store": {
            "max_attempts": 5,
        },
        "logging": {
            "level": "INFO",
            "format": "text",
        },
        "performance": {
            "max_workers": 3,
        },
    }
