"""Test doubles for the sensor source and the storage backend."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from netatmo_collector.collector.sources.base import SensorSource
from netatmo_collector.config import Config, InfluxDBConfig, NetatmoConfig
from netatmo_collector.shared.database import StorageError
from netatmo_collector.shared.models import ModuleData, Point, StationData

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_config(interval: float = 0.01, poll_on_start: bool = True) -> Config:
    return Config(
        netatmo=NetatmoConfig(
            client_id="client-id",
            client_secret="client-secret",
            username="user@example.com",
            password="secret",
            interval=interval,
            poll_on_start=poll_on_start,
        ),
        influxdb=InfluxDBConfig(
            url="http://localhost:8086",
            username="influx",
            password="influx-secret",
            database="netatmo",
            retention_policy="autogen",
            precision="s",
        ),
    )


def module(name: str, readings: Dict[str, Any], timestamp: datetime = T0) -> ModuleData:
    return ModuleData(name=name, timestamp=timestamp, readings=dict(readings))


def station(name: str, *modules: ModuleData) -> StationData:
    return StationData(name=name, modules=list(modules))


def point(measurement: str = "temperature", value: Any = 21.5, station_name: str = "A",
          module_name: str = "M", timestamp: datetime = T0) -> Point:
    return Point.reading(measurement, station_name, module_name, value, timestamp)


def drain(queue: asyncio.Queue) -> List[Any]:
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


async def wait_until(condition, timeout: float = 2.0) -> None:
    """Poll condition() until it is true or fail after timeout seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


class FakeSource(SensorSource):
    """Returns scripted fetch responses; scripted exceptions are raised.

    Once the script is exhausted every fetch returns no stations. When
    ``gate`` is set to an event, fetches block until it is set.
    """

    def __init__(self, responses: Optional[Sequence[Any]] = None,
                 connect_error: Optional[Exception] = None):
        self.responses = list(responses or [])
        self.connect_error = connect_error
        self.gate: Optional[asyncio.Event] = None
        self.fetch_started: Optional[asyncio.Event] = None
        self.fetch_calls = 0
        self.connected = False
        self.closed = False

    async def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    async def fetch_all(self) -> List[StationData]:
        self.fetch_calls += 1
        if self.fetch_started is not None:
            self.fetch_started.set()
        if self.gate is not None:
            await self.gate.wait()
        if not self.responses:
            return []
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


class FakeStorage:
    """Records every write call; calls whose index is in fail_on raise."""

    def __init__(self, fail_on: Sequence[int] = (), connect_error: Optional[Exception] = None):
        self.fail_on = set(fail_on)
        self.connect_error = connect_error
        self.calls: List[Dict[str, Any]] = []
        self.connected = False
        self.closed = False

    async def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    async def write_batch(self, database, retention_policy, precision, points) -> None:
        index = len(self.calls)
        self.calls.append({
            "database": database,
            "retention_policy": retention_policy,
            "precision": precision,
            "points": list(points),
        })
        if index in self.fail_on:
            raise StorageError("write rejected")

    async def close(self) -> None:
        self.closed = True

    @property
    def batches(self) -> List[List[Point]]:
        return [call["points"] for call in self.calls]
