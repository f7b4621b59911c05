"""Unit tests for points and the flush marker."""

import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from netatmo_collector.shared.models import FLUSH, FlushMarker, Point, PointError
from tests.helpers import T0


def test_reading_builds_single_field_point_tagged_by_source() -> None:
    point = Point.reading("temperature", "A", "M", 21.5, T0)

    assert point.measurement == "temperature"
    assert dict(point.tags) == {"station": "A", "module": "M"}
    assert dict(point.fields) == {"value": 21.5}
    assert point.value == 21.5
    assert point.timestamp == T0


def test_point_is_immutable() -> None:
    tags = {"station": "A", "module": "M"}
    point = Point("temperature", tags, {"value": 1.0}, T0)

    with pytest.raises(dataclasses.FrozenInstanceError):
        point.measurement = "humidity"
    with pytest.raises(TypeError):
        point.tags["station"] = "B"
    with pytest.raises(TypeError):
        point.fields["value"] = 2.0

    # Mutating the caller's dict does not reach the point
    tags["station"] = "B"
    assert point.tags["station"] == "A"


def test_timestamp_is_normalised_to_utc_seconds() -> None:
    naive = datetime(2024, 1, 1, 12, 0, 0, 750000)
    offset = datetime(2024, 1, 1, 13, 0, 0, tzinfo=timezone(timedelta(hours=1)))

    assert Point.reading("noise", "A", "M", 40, naive).timestamp == T0
    assert Point.reading("noise", "A", "M", 40, offset).timestamp == T0


@pytest.mark.parametrize("value", [21.5, 1012, True, "ok"])
def test_scalar_values_are_accepted(value) -> None:
    assert Point.reading("x", "A", "M", value, T0).value == value


@pytest.mark.parametrize("value", [float("nan"), float("inf"), None, [1, 2], {"a": 1}])
def test_unrepresentable_values_are_rejected(value) -> None:
    with pytest.raises(PointError):
        Point.reading("x", "A", "M", value, T0)


def test_invalid_points_are_rejected() -> None:
    with pytest.raises(PointError):
        Point("", {"station": "A"}, {"value": 1}, T0)
    with pytest.raises(PointError):
        Point("x", {"station": 1}, {"value": 1}, T0)
    with pytest.raises(PointError):
        Point("x", {"station": "A"}, {}, T0)
    with pytest.raises(PointError):
        Point("x", {"station": "A"}, {"value": 1}, 1704110400)


def test_point_error_is_a_value_error() -> None:
    assert issubclass(PointError, ValueError)


def test_flush_marker_is_a_singleton() -> None:
    assert FlushMarker() is FLUSH
    assert repr(FLUSH) == "FLUSH"
