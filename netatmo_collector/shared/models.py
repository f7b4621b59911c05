"""Core data models for sensor readings and time-series points."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Union

FieldValue = Union[bool, int, float, str]


class PointError(ValueError):
    """Raised when a reading cannot be represented as a Point."""


def _as_utc_seconds(timestamp: datetime) -> datetime:
    """Normalise a timestamp to an aware UTC datetime with second precision."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).replace(microsecond=0)


@dataclass(frozen=True)
class Point:
    """A single timestamped measurement.

    Tags identify the source of the reading (station and module), fields
    carry the measured value. The timestamp is the instant the sensor
    produced the reading, not the instant it was collected.

    Points are immutable: tags and fields are copied into read-only
    mappings when the point is built.
    """
    measurement: str
    tags: Mapping[str, str]
    fields: Mapping[str, FieldValue]
    timestamp: datetime

    def __post_init__(self):
        if not isinstance(self.measurement, str) or not self.measurement:
            raise PointError(f"Invalid measurement name: {self.measurement!r}")

        if not isinstance(self.timestamp, datetime):
            raise PointError(f"Invalid timestamp for {self.measurement}: {self.timestamp!r}")

        tags = dict(self.tags)
        for key, value in tags.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise PointError(f"Tags must be strings: {key!r}={value!r}")

        fields = dict(self.fields)
        if not fields:
            raise PointError(f"Point {self.measurement} has no fields")
        for key, value in fields.items():
            _check_field(self.measurement, key, value)

        object.__setattr__(self, "tags", MappingProxyType(tags))
        object.__setattr__(self, "fields", MappingProxyType(fields))
        object.__setattr__(self, "timestamp", _as_utc_seconds(self.timestamp))

    @classmethod
    def reading(
        cls,
        measurement: str,
        station: str,
        module: str,
        value: Any,
        timestamp: datetime,
    ) -> "Point":
        """Build the single-field point produced for one sensor reading."""
        return cls(
            measurement=measurement,
            tags={"station": station, "module": module},
            fields={"value": value},
            timestamp=timestamp,
        )

    @property
    def value(self) -> FieldValue:
        return self.fields["value"]


def _check_field(measurement: str, key: str, value: Any) -> None:
    if not isinstance(key, str) or not key:
        raise PointError(f"Invalid field name on {measurement}: {key!r}")
    if not isinstance(value, (bool, int, float, str)):
        raise PointError(
            f"Unsupported value for {measurement}.{key}: {value!r} ({type(value).__name__})"
        )
    if isinstance(value, float) and not math.isfinite(value):
        raise PointError(f"Non-finite value for {measurement}.{key}: {value!r}")


class FlushMarker:
    """Marker sent after a poll cycle's points to request a batch write."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "FLUSH"


FLUSH = FlushMarker()


@dataclass
class ModuleData:
    """Latest readings reported by one station module."""
    name: str
    timestamp: datetime
    readings: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StationData:
    """A weather station and the modules attached to it."""
    name: str
    modules: List[ModuleData] = field(default_factory=list)
