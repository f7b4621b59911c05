"""Buffers points from the collector and commits them to InfluxDB in batches."""

import asyncio
import logging
from typing import List, Sequence, Tuple

from netatmo_collector.config import InfluxDBConfig
from netatmo_collector.shared.database import PointsStorage, StorageError
from netatmo_collector.shared.errors import StartupError
from netatmo_collector.shared.models import FLUSH, Point

logger = logging.getLogger(__name__)

_SHUTDOWN = object()


def describe_batch(points: Sequence[Point]) -> str:
    """Summarise a batch so dropped data can be traced in the logs."""
    if not points:
        return "empty batch"
    first = min(p.timestamp for p in points).isoformat()
    last = max(p.timestamp for p in points).isoformat()
    stations = sorted({p.tags.get("station", "?") for p in points})
    measurements = sorted({p.measurement for p in points})
    return (
        f"{first} .. {last}, stations={','.join(stations)}, "
        f"measurements={','.join(measurements)}"
    )


class Writer:
    """Accumulates points and writes them to storage on each flush.

    Events are handled one at a time: a Point is appended to the buffer,
    FLUSH writes the whole buffer as one batch, and shutdown performs a
    final flush before returning. The buffer is emptied before every write,
    so a failed batch is dropped rather than retried.
    """

    def __init__(
        self,
        storage: PointsStorage,
        config: InfluxDBConfig,
        queue: asyncio.Queue,
        shutdown: asyncio.Event,
    ):
        self.storage = storage
        self.config = config
        self.queue = queue
        self.shutdown = shutdown
        self.buffer: List[Point] = []
        self.batches_written = 0
        self.batches_failed = 0

    async def run(self) -> None:
        """Connect to storage and process events until shutdown.

        Raises:
            StartupError: If the session with storage cannot be established.
        """
        try:
            await self.storage.connect()
        except StorageError as e:
            await self.storage.close()
            raise StartupError("InfluxDB", e) from e

        try:
            while True:
                event = await self._next_event()

                if event is _SHUTDOWN:
                    self._drain_queued()
                    logger.debug(f"Shutting down, final batch of {len(self.buffer)} points")
                    await self.flush()
                    return

                if event is FLUSH:
                    await self.flush()
                elif isinstance(event, Point):
                    self.buffer.append(event)
                else:
                    logger.warning(f"Ignoring unexpected item on the queue: {event!r}")
        finally:
            await self.storage.close()
            logger.debug(
                f"Writer exited after {self.batches_written} batches "
                f"({self.batches_failed} failed)"
            )

    async def _next_event(self):
        """Wait for the next queued item or the shutdown signal, shutdown first."""
        if self.shutdown.is_set():
            return _SHUTDOWN
        if not self.queue.empty():
            return self.queue.get_nowait()

        get_task = asyncio.ensure_future(self.queue.get())
        stop_task = asyncio.ensure_future(self.shutdown.wait())
        try:
            done, _ = await asyncio.wait(
                {get_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (get_task, stop_task):
                if not task.done():
                    task.cancel()

        if get_task in done:
            return get_task.result()
        return _SHUTDOWN

    def _drain_queued(self) -> None:
        """Move points already queued before shutdown into the final batch."""
        # Receives past shutdown on purpose: whole cycles enqueued before it go
        # into the final batch, not just the buffer. Never waits, and the
        # collector emits nothing once shutdown is set.
        drained = 0
        while True:
            try:
                item = self.queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            if isinstance(item, Point):
                self.buffer.append(item)
                drained += 1
        if drained:
            logger.debug(f"Drained {drained} queued points into the final batch")

    async def flush(self) -> bool:
        """Write the buffer as a single batch and empty it.

        Returns:
            True if the batch was written (or there was nothing to write).
        """
        batch: Tuple[Point, ...] = tuple(self.buffer)
        self.buffer = []

        if not batch:
            logger.debug("Nothing to write")
            return True

        logger.debug(f"Sending {len(batch)} points")
        try:
            await self.storage.write_batch(
                self.config.database,
                self.config.retention_policy,
                self.config.precision,
                batch,
            )
        except Exception as e:
            self.batches_failed += 1
            logger.error(
                f"Cannot write points to InfluxDB, dropping {len(batch)} points "
                f"({describe_batch(batch)}): {e}"
            )
            return False

        self.batches_written += 1
        logger.info(f"Wrote {len(batch)} points to InfluxDB")
        return True
