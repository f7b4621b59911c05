"""InfluxDB storage for time-series points."""

import asyncio
import logging
from typing import List, Optional, Sequence

import aiohttp
from influxdb_client import Point as InfluxPoint
from influxdb_client import WritePrecision
from influxdb_client.client.influxdb_client_async import InfluxDBClientAsync
from influxdb_client.rest import ApiException

from netatmo_collector.config import InfluxDBConfig
from .models import Point

logger = logging.getLogger(__name__)

WRITE_PRECISIONS = {
    "s": WritePrecision.S,
    "ms": WritePrecision.MS,
    "us": WritePrecision.US,
    "ns": WritePrecision.NS,
}

# InfluxDB 1.8+ compatibility API: no organisation, user:password token
COMPAT_ORG = "-"


class StorageError(Exception):
    """Raised when InfluxDB cannot be reached or rejects a write."""


def to_influx_point(point: Point, precision: str = "s") -> InfluxPoint:
    """Convert a Point to an influxdb_client record.

    Args:
        point: The point to convert.
        precision: Write precision (s, ms, us, ns).

    Returns:
        influxdb_client Point ready for the write API.
    """
    record = InfluxPoint(point.measurement)
    for key, value in point.tags.items():
        record.tag(key, value)
    for key, value in point.fields.items():
        record.field(key, value)
    record.time(point.timestamp, WRITE_PRECISIONS[precision])
    return record


def bucket_name(database: str, retention_policy: Optional[str]) -> str:
    """Bucket name addressing a database and retention policy."""
    if retention_policy:
        return f"{database}/{retention_policy}"
    return database


class PointsStorage:
    """Writes batches of points to InfluxDB.

    Uses the async client of influxdb-client against the 1.8 compatibility
    endpoints, so the database and retention policy are addressed as a
    "database/retention_policy" bucket.
    """

    def __init__(self, config: InfluxDBConfig):
        """Initialize storage with InfluxDB configuration.

        Args:
            config: InfluxDB connection configuration.
        """
        self.config = config
        self._client: Optional[InfluxDBClientAsync] = None

    async def connect(self) -> None:
        """Create the client and check the server answers.

        Raises:
            StorageError: If InfluxDB is unreachable.
        """
        self._client = InfluxDBClientAsync(
            url=self.config.url,
            token=f"{self.config.username}:{self.config.password}",
            org=COMPAT_ORG,
            timeout=int(self.config.timeout * 1000),
        )
        try:
            reachable = await self._client.ping()
        except (ApiException, aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise StorageError(f"InfluxDB at {self.config.url} is unreachable: {e}") from e

        if not reachable:
            raise StorageError(f"InfluxDB at {self.config.url} is unreachable")
        logger.info(f"Connected to InfluxDB at {self.config.url}")

    async def write_batch(
        self,
        database: str,
        retention_policy: Optional[str],
        precision: str,
        points: Sequence[Point],
    ) -> None:
        """Write points in a single request.

        Args:
            database: Target database.
            retention_policy: Retention policy, or empty for the default.
            precision: Write precision (s, ms, us, ns).
            points: Points to write, in order.

        Raises:
            StorageError: If the write fails.
        """
        if self._client is None:
            raise StorageError("Not connected to InfluxDB")

        records: List[InfluxPoint] = [to_influx_point(p, precision) for p in points]
        write_api = self._client.write_api()
        try:
            await write_api.write(
                bucket=bucket_name(database, retention_policy),
                org=COMPAT_ORG,
                record=records,
                write_precision=WRITE_PRECISIONS[precision],
            )
        except ApiException as e:
            raise StorageError(f"InfluxDB rejected the write: {e.status} {e.reason}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise StorageError(f"InfluxDB write failed: {e}") from e

    async def close(self) -> None:
        """Close the client."""
        if self._client is not None:
            await self._client.close()
            self._client = None
