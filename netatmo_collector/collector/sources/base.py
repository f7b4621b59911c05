"""Base class for sensor data sources."""

from abc import ABC, abstractmethod
from typing import List
import logging

from netatmo_collector.shared.models import StationData

logger = logging.getLogger(__name__)


class SourceError(Exception):
    """Raised when a sensor source cannot be reached or returns bad data."""


class SensorSource(ABC):
    """Base class for all sensor data sources."""

    @abstractmethod
    async def connect(self) -> None:
        """Establish a session with the source. Raises SourceError."""
        pass

    @abstractmethod
    async def fetch_all(self) -> List[StationData]:
        """Fetch the latest readings of every station. Raises SourceError."""
        pass

    async def close(self) -> None:
        """Release the session, if any."""
        pass
