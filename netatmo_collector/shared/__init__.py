"""Shared utilities for the collector and the writer."""

from .models import FLUSH, FlushMarker, ModuleData, Point, PointError, StationData
from .config import ConfigError, load_yaml_config, get_config_path
from .errors import StartupError
from .logging import setup_logging

__all__ = [
    "FLUSH",
    "FlushMarker",
    "ModuleData",
    "Point",
    "PointError",
    "StationData",
    "ConfigError",
    "load_yaml_config",
    "get_config_path",
    "StartupError",
    "setup_logging",
]
