"""Sensor data sources for collection."""

from .base import SensorSource, SourceError
from .netatmo import NetatmoSource

__all__ = [
    "SensorSource",
    "SourceError",
    "NetatmoSource",
]
