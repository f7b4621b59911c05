"""Collector service - wires the collector and the writer together."""

import asyncio
import logging
import signal
from typing import List, Optional

from .collector import Collector
from .collector.sources import NetatmoSource, SensorSource
from .config import Config
from .shared.database import PointsStorage
from .writer import Writer

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CollectorService:
    """Main service that runs the collector and the writer side by side."""

    def __init__(
        self,
        config: Config,
        source: Optional[SensorSource] = None,
        storage: Optional[PointsStorage] = None,
        echo_points: bool = False,
    ):
        """Initialize the service.

        Args:
            config: Configuration object.
            source: Sensor source; defaults to a NetatmoSource.
            storage: Point storage; defaults to InfluxDB storage.
            echo_points: Log every collected reading at INFO.
        """
        self.config = config
        self.source = source if source is not None else NetatmoSource(config.netatmo)
        self.storage = storage if storage is not None else PointsStorage(config.influxdb)
        self.echo_points = echo_points
        self.shutdown: Optional[asyncio.Event] = None
        self.queue: Optional[asyncio.Queue] = None

    def request_shutdown(self, reason: str = "shutdown requested") -> None:
        """Trigger the shared shutdown signal. Safe to call more than once."""
        if self.shutdown is None:
            return
        if self.shutdown.is_set():
            logger.info(f"Already shutting down ({reason})")
            return
        logger.info(f"{reason}, shutting down...")
        self.shutdown.set()

    def _setup_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> List[int]:
        """Set up signal handlers for graceful shutdown."""
        installed = []
        for signum in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(
                    signum, self.request_shutdown, f"Received {signal.Signals(signum).name}"
                )
            except (NotImplementedError, RuntimeError, ValueError):
                # Not in the main thread, or a platform without loop signal support
                logger.debug(f"Cannot install handler for {signal.Signals(signum).name}")
                continue
            installed.append(signum)
        return installed

    async def run(self) -> None:
        """Run until shutdown (blocking).

        Raises:
            StartupError: If the sensor source or storage session fails at startup.
        """
        loop = asyncio.get_running_loop()
        self.shutdown = asyncio.Event()
        self.queue = asyncio.Queue()

        collector = Collector(
            self.source,
            self.config.netatmo,
            self.queue,
            self.shutdown,
            echo_points=self.echo_points,
        )
        writer = Writer(self.storage, self.config.influxdb, self.queue, self.shutdown)

        installed = self._setup_signal_handlers(loop)
        logger.info("Starting")
        try:
            tasks = [
                asyncio.ensure_future(collector.run()),
                asyncio.ensure_future(writer.run()),
            ]
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)

            if pending:
                # One side failed: stop the other one cleanly before reporting
                self.request_shutdown("Startup failed")
                await asyncio.wait(pending)

            for task in tasks:
                if task.exception() is not None:
                    raise task.exception()
        finally:
            for signum in installed:
                loop.remove_signal_handler(signum)

        logger.info("Stopped")


def run_service(config: Config, echo_points: bool = False) -> None:
    """Run the collector service until interrupted.

    Args:
        config: Loaded configuration.
        echo_points: Log every collected reading at INFO.
    """
    service = CollectorService(config, echo_points=echo_points)
    asyncio.run(service.run())
