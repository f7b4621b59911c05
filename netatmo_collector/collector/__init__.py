"""Sensor data collection."""

from .collector import Collector
from .sources import NetatmoSource, SensorSource, SourceError

__all__ = ["Collector", "NetatmoSource", "SensorSource", "SourceError"]
