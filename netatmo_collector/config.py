"""Configuration loading for the Netatmo collector.

The file is read once at startup into frozen dataclasses which are then
handed read-only to the collector and the writer.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from netatmo_collector.shared.config import ConfigError, get_log_level, load_yaml_config

logger = logging.getLogger(__name__)

PRECISIONS = ("s", "ms", "us", "ns")


@dataclass(frozen=True)
class NetatmoConfig:
    """Netatmo API credentials and polling settings."""
    client_id: str
    client_secret: str
    username: str
    password: str
    interval: float = 300.0
    poll_on_start: bool = True
    timeout: float = 30.0


@dataclass(frozen=True)
class InfluxDBConfig:
    """InfluxDB connection and write settings."""
    url: str
    username: str
    password: str
    database: str
    retention_policy: str = ""
    precision: str = "s"
    timeout: float = 10.0


@dataclass(frozen=True)
class Config:
    """Main configuration container."""
    netatmo: NetatmoConfig
    influxdb: InfluxDBConfig
    log_level: str = "INFO"


def _section(data: dict, name: str) -> dict:
    section = data.get(name)
    if section is None:
        raise ConfigError(f"Missing '{name}' section")
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' section must be a mapping")
    return section


def _required(section: dict, section_name: str, key: str, env_var: Optional[str] = None) -> str:
    """Read a required string, letting the environment override the file."""
    value: Any = os.getenv(env_var) if env_var else None
    if not value:
        value = section.get(key)
    if value is None or value == "":
        hint = f" (or set {env_var})" if env_var else ""
        raise ConfigError(f"Missing required setting {section_name}.{key}{hint}")
    return str(value)


def _positive_number(section: dict, section_name: str, key: str, default: float) -> float:
    value = section.get(key, default)
    if isinstance(value, bool):
        raise ConfigError(f"{section_name}.{key} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{section_name}.{key} must be a number, got {value!r}")
    if number <= 0:
        raise ConfigError(f"{section_name}.{key} must be > 0, got {value!r}")
    return number


def _boolean(section: dict, section_name: str, key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"{section_name}.{key} must be true or false, got {value!r}")
    return value


def _parse_netatmo(data: dict) -> NetatmoConfig:
    section = _section(data, "netatmo")
    return NetatmoConfig(
        client_id=_required(section, "netatmo", "client_id", "NETATMO_CLIENT_ID"),
        client_secret=_required(section, "netatmo", "client_secret", "NETATMO_CLIENT_SECRET"),
        username=_required(section, "netatmo", "username", "NETATMO_USERNAME"),
        password=_required(section, "netatmo", "password", "NETATMO_PASSWORD"),
        interval=_positive_number(section, "netatmo", "interval", 300.0),
        poll_on_start=_boolean(section, "netatmo", "poll_on_start", True),
        timeout=_positive_number(section, "netatmo", "timeout", 30.0),
    )


def _parse_influxdb(data: dict) -> InfluxDBConfig:
    section = _section(data, "influxdb")

    precision = str(section.get("precision", "s")).lower()
    if precision not in PRECISIONS:
        raise ConfigError(
            f"influxdb.precision must be one of {', '.join(PRECISIONS)}, got {precision!r}"
        )

    return InfluxDBConfig(
        url=_required(section, "influxdb", "url", "INFLUXDB_URL"),
        username=_required(section, "influxdb", "username", "INFLUXDB_USERNAME"),
        password=_required(section, "influxdb", "password", "INFLUXDB_PASSWORD"),
        database=_required(section, "influxdb", "database"),
        retention_policy=str(section.get("retention_policy") or ""),
        precision=precision,
        timeout=_positive_number(section, "influxdb", "timeout", 10.0),
    )


def load_config(config_path: Optional[Union[str, Path]] = None) -> Config:
    """Load configuration from YAML file and environment variables.

    Args:
        config_path: Path to the YAML file. If None, uses
            NETATMO_COLLECTOR_CONFIG or the default path under /etc.

    Returns:
        Config object with all settings loaded.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ConfigError: If the file is malformed or a required setting is missing.
    """
    data = load_yaml_config(config_path)

    config = Config(
        netatmo=_parse_netatmo(data),
        influxdb=_parse_influxdb(data),
        log_level=get_log_level(data),
    )
    logger.debug(
        f"Loaded config: interval={config.netatmo.interval}s, "
        f"influxdb={config.influxdb.url} database={config.influxdb.database}"
    )
    return config
