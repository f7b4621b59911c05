"""Configuration loading utilities."""

import os
from pathlib import Path
from typing import Optional, Union

import yaml
from dotenv import load_dotenv

DEFAULT_CONFIG_PATH = Path("/etc/netatmo-collector/netatmo-collector.yaml")


class ConfigError(Exception):
    """Raised when a configuration file is malformed or incomplete."""


def get_config_path(config_path: Optional[Union[str, Path]] = None) -> Path:
    """Get path to the collector configuration file.

    Args:
        config_path: Explicit path. If None, uses NETATMO_COLLECTOR_CONFIG
            or falls back to /etc/netatmo-collector/netatmo-collector.yaml.

    Returns:
        Path to the configuration file.
    """
    if config_path is not None:
        return Path(config_path)

    env_path = os.getenv("NETATMO_COLLECTOR_CONFIG")
    if env_path:
        return Path(env_path)

    return DEFAULT_CONFIG_PATH


def load_yaml_config(
    config_path: Optional[Union[str, Path]] = None,
    load_env: bool = True,
) -> dict:
    """Load YAML configuration file.

    Args:
        config_path: Path to config file. If None, uses get_config_path().
        load_env: Whether to load .env file first.

    Returns:
        Configuration dictionary.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ConfigError: If config file is invalid YAML or not a mapping.
    """
    if load_env:
        load_dotenv()

    config_path = get_config_path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse config file {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")
    return data


def get_log_level(config: dict) -> str:
    """Extract log level from config, with sensible default.

    Args:
        config: Configuration dictionary.

    Returns:
        Log level string (e.g., 'INFO', 'DEBUG').
    """
    return str(config.get("log_level", "INFO")).upper()
