"""End-to-end tests of the collector service and the command line entry point."""

import asyncio

import pytest

import netatmo_collector
from netatmo_collector.collector import Collector
from netatmo_collector.collector.sources.base import SourceError
from netatmo_collector.shared.database import StorageError
from netatmo_collector.shared.errors import StartupError
from netatmo_collector.shared.models import Point
from netatmo_collector.service import CollectorService
from netatmo_collector.writer import Writer
from tests.helpers import (
    T0,
    FakeSource,
    FakeStorage,
    make_config,
    module,
    point,
    station,
    wait_until,
)


@pytest.mark.asyncio
async def test_single_reading_is_written_after_first_poll() -> None:
    source = FakeSource([[station("A", module("M", {"temperature": 21.5}))]])
    storage = FakeStorage()
    service = CollectorService(make_config(interval=0.01), source=source, storage=storage)

    task = asyncio.ensure_future(service.run())
    await wait_until(lambda: len(storage.calls) >= 1)
    service.request_shutdown("test finished")
    await asyncio.wait_for(task, 1.0)

    assert storage.batches == [[
        Point("temperature", {"station": "A", "module": "M"}, {"value": 21.5}, T0)
    ]]
    assert source.closed
    assert storage.closed


@pytest.mark.asyncio
async def test_shutdown_during_fetch_writes_buffered_points_once() -> None:
    config = make_config(interval=0.01)
    queue = asyncio.Queue()
    shutdown = asyncio.Event()
    source = FakeSource([[station("A", module("M", {"temperature": 30.0}))]])
    source.gate = asyncio.Event()
    source.fetch_started = asyncio.Event()
    storage = FakeStorage()
    collector = Collector(source, config.netatmo, queue, shutdown)
    writer = Writer(storage, config.influxdb, queue, shutdown)

    buffered = [point("temperature", v) for v in (1.0, 2.0, 3.0)]
    for p in buffered:
        queue.put_nowait(p)

    tasks = asyncio.gather(collector.run(), writer.run())
    await source.fetch_started.wait()
    await wait_until(lambda: len(writer.buffer) == 3)

    shutdown.set()
    source.gate.set()
    await asyncio.wait_for(tasks, 1.0)

    assert source.fetch_calls == 1
    assert storage.batches == [buffered]
    assert queue.empty()


@pytest.mark.asyncio
async def test_source_startup_failure_stops_the_writer() -> None:
    source = FakeSource(connect_error=SourceError("invalid_grant"))
    storage = FakeStorage()
    service = CollectorService(make_config(), source=source, storage=storage)

    with pytest.raises(StartupError):
        await asyncio.wait_for(service.run(), 1.0)

    assert service.shutdown.is_set()
    assert storage.closed
    assert storage.calls == []


@pytest.mark.asyncio
async def test_storage_startup_failure_stops_the_collector() -> None:
    source = FakeSource()
    storage = FakeStorage(connect_error=StorageError("connection refused"))
    service = CollectorService(make_config(), source=source, storage=storage)

    with pytest.raises(StartupError) as excinfo:
        await asyncio.wait_for(service.run(), 1.0)

    assert excinfo.value.service == "InfluxDB"
    assert source.closed


@pytest.mark.asyncio
async def test_request_shutdown_is_idempotent() -> None:
    source = FakeSource()
    storage = FakeStorage()
    service = CollectorService(make_config(interval=0.01), source=source, storage=storage)

    task = asyncio.ensure_future(service.run())
    await wait_until(lambda: source.fetch_calls >= 1)
    service.request_shutdown("first")
    service.request_shutdown("second")
    await asyncio.wait_for(task, 1.0)

    assert service.shutdown.is_set()


@pytest.fixture
def quiet_logging(monkeypatch):
    monkeypatch.setattr("netatmo_collector.shared.logging.setup_logging", lambda *a, **k: None)


def test_main_exits_non_zero_when_config_is_missing(tmp_path, quiet_logging) -> None:
    assert netatmo_collector.main(["--config", str(tmp_path / "missing.yaml")]) == 1


def test_main_exits_non_zero_on_startup_failure(monkeypatch, quiet_logging) -> None:
    monkeypatch.setattr("netatmo_collector.config.load_config", lambda path: make_config())

    def fail(config, echo_points=False):
        raise StartupError("InfluxDB", StorageError("connection refused"))

    monkeypatch.setattr("netatmo_collector.service.run_service", fail)

    assert netatmo_collector.main(["--config", "collector.yaml"]) == 1


def test_main_runs_service_and_exits_zero(monkeypatch, quiet_logging) -> None:
    calls = []
    monkeypatch.setattr("netatmo_collector.config.load_config", lambda path: make_config())
    monkeypatch.setattr(
        "netatmo_collector.service.run_service",
        lambda config, echo_points=False: calls.append(echo_points),
    )

    assert netatmo_collector.main(["--config", "collector.yaml", "--verbose"]) == 0
    assert calls == [True]
