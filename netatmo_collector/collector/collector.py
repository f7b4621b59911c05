"""Polling loop that turns station readings into points for the writer."""

import asyncio
import logging
from typing import Iterator, List

from netatmo_collector.config import NetatmoConfig
from netatmo_collector.shared.errors import StartupError
from netatmo_collector.shared.models import FLUSH, Point, PointError, StationData
from .sources.base import SensorSource, SourceError

logger = logging.getLogger(__name__)


class Collector:
    """Polls a sensor source on a timer and emits points to the writer.

    Every successful poll puts one Point per reading on the hand-off queue,
    followed by a single FLUSH marker. Failed polls emit nothing. The loop
    stops once the shared shutdown event is set; a fetch already in flight
    is allowed to finish but its readings are discarded.
    """

    def __init__(
        self,
        source: SensorSource,
        config: NetatmoConfig,
        queue: asyncio.Queue,
        shutdown: asyncio.Event,
        echo_points: bool = False,
    ):
        """Initialize the collector.

        Args:
            source: Sensor source to poll.
            config: Polling settings (interval, poll_on_start).
            queue: Unbounded hand-off queue shared with the writer.
            shutdown: Process-wide shutdown event.
            echo_points: Log every collected point at INFO instead of DEBUG.
        """
        self.source = source
        self.config = config
        self.queue = queue
        self.shutdown = shutdown
        self.echo_points = echo_points
        self.cycles = 0
        self.failed_cycles = 0

    async def run(self) -> None:
        """Connect to the source and poll until shutdown.

        Raises:
            StartupError: If the session with the source cannot be established.
        """
        try:
            await self.source.connect()
        except SourceError as e:
            await self.source.close()
            raise StartupError("sensor source", e) from e

        logger.info(f"Collecting every {self.config.interval:g}s")
        try:
            await self._poll_loop()
        finally:
            await self.source.close()
            logger.debug(
                f"Collector exited after {self.cycles} cycles ({self.failed_cycles} failed)"
            )

    async def _poll_loop(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self.config.interval
        next_tick = loop.time() if self.config.poll_on_start else loop.time() + interval

        while not self.shutdown.is_set():
            delay = next_tick - loop.time()
            if delay > 0 and await self._wait_for_shutdown(delay):
                break
            if self.shutdown.is_set():
                # The tick and shutdown became ready together
                break

            await self.poll()

            next_tick += interval
            now = loop.time()
            if next_tick < now:
                # The poll overran the interval: drop missed ticks, poll again right away
                logger.debug(f"Poll overran the {interval:g}s interval")
                next_tick = now

    async def _wait_for_shutdown(self, timeout: float) -> bool:
        """Wait up to timeout seconds; True if shutdown was signalled."""
        try:
            await asyncio.wait_for(self.shutdown.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def poll(self) -> int:
        """Run one poll cycle.

        Returns:
            Number of points emitted (0 if the fetch failed).
        """
        self.cycles += 1
        try:
            stations = await self.source.fetch_all()
        except Exception as e:
            self.failed_cycles += 1
            logger.error(f"Cannot fetch sensor data, no points for cycle {self.cycles}: {e}")
            return 0

        if self.shutdown.is_set():
            logger.info(
                f"Shutdown requested during fetch, discarding cycle {self.cycles} "
                f"({len(stations)} stations)"
            )
            return 0

        # No await from here on: a cycle's points and its FLUSH are enqueued together
        count = 0
        for point in self.build_points(stations):
            self.queue.put_nowait(point)
            count += 1
        self.queue.put_nowait(FLUSH)

        logger.debug(f"Cycle {self.cycles}: queued {count} points from {len(stations)} stations")
        return count

    def build_points(self, stations: List[StationData]) -> Iterator[Point]:
        """Decompose a fetch response into one point per reading."""
        level = logging.INFO if self.echo_points else logging.DEBUG

        for station in stations:
            for module in station.modules:
                for measurement, value in module.readings.items():
                    try:
                        point = Point.reading(
                            measurement=measurement,
                            station=station.name,
                            module=module.name,
                            value=value,
                            timestamp=module.timestamp,
                        )
                    except PointError as e:
                        logger.warning(
                            f"Skipping reading {station.name}/{module.name}/{measurement}: {e}"
                        )
                        continue

                    logger.log(
                        level,
                        f"New point ts={point.timestamp.isoformat()} field={measurement} "
                        f"station={station.name} module={module.name} value={value}",
                    )
                    yield point
