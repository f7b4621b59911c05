"""Netatmo weather station source."""

import asyncio
import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import aiohttp

from netatmo_collector.config import NetatmoConfig
from netatmo_collector.shared.models import ModuleData, StationData
from .base import SensorSource, SourceError

logger = logging.getLogger(__name__)

NETATMO_TOKEN_URL = "https://api.netatmo.com/oauth2/token"
NETATMO_STATIONS_URL = "https://api.netatmo.com/api/getstationsdata"

# Refresh the access token this many seconds before Netatmo expires it
TOKEN_REFRESH_MARGIN = 60.0

# Netatmo API error codes meaning the access token must be renewed
TOKEN_ERROR_CODES = {2, 3}

# data_type reported by a module -> (dashboard_data key, measurement name, value type).
# InfluxDB fixes a field's type on first write, and Netatmo sends whole
# numbers without a decimal point, so every measurement gets one fixed type.
DATA_TYPES = {
    "Temperature": [("Temperature", "temperature", float)],
    "Humidity": [("Humidity", "humidity", int)],
    "CO2": [("CO2", "co2", int)],
    "Noise": [("Noise", "noise", int)],
    "Pressure": [("Pressure", "pressure", float)],
    "Rain": [
        ("Rain", "rain", float),
        ("sum_rain_1", "sum_rain_1", float),
        ("sum_rain_24", "sum_rain_24", float),
    ],
    "Wind": [
        ("WindStrength", "wind_strength", int),
        ("WindAngle", "wind_angle", int),
        ("GustStrength", "gust_strength", int),
        ("GustAngle", "gust_angle", int),
    ],
}


def coerce_reading(value: Any, kind: type) -> Union[int, float]:
    """Convert a dashboard value to its measurement's fixed type.

    Raises:
        ValueError: If the value is not a finite number.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"not a number: {value!r}")
    if not math.isfinite(value):
        raise ValueError(f"not a finite number: {value!r}")
    if kind is int:
        return int(round(value))
    return float(value)


def parse_module(raw: Dict[str, Any], station_name: str) -> Optional[ModuleData]:
    """Decode one module (or base station) entry of getstationsdata.

    Args:
        raw: Module dictionary from the API response.
        station_name: Name of the owning station, for log messages.

    Returns:
        ModuleData, or None if the module currently reports no data.
    """
    name = raw.get("module_name") or raw.get("_id") or "unknown"
    dashboard = raw.get("dashboard_data")

    if not dashboard or "time_utc" not in dashboard:
        # Unreachable modules (dead battery, out of range) have no dashboard
        logger.warning(f"No data for module {station_name}/{name}, skipping")
        return None

    try:
        timestamp = datetime.fromtimestamp(int(dashboard["time_utc"]), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        logger.warning(f"Invalid time_utc for module {station_name}/{name}: {e}")
        return None

    readings: Dict[str, Any] = {}
    for data_type in raw.get("data_type") or []:
        keys = DATA_TYPES.get(data_type)
        if keys is None:
            logger.debug(f"Ignoring unknown data type {data_type} on {station_name}/{name}")
            continue
        for key, measurement, kind in keys:
            if key not in dashboard:
                continue
            try:
                readings[measurement] = coerce_reading(dashboard[key], kind)
            except ValueError as e:
                logger.warning(f"Skipping {measurement} of {station_name}/{name}: {e}")

    return ModuleData(name=name, timestamp=timestamp, readings=readings)


def parse_stations(body: Dict[str, Any]) -> List[StationData]:
    """Decode the body of a getstationsdata response.

    Each station's modules are its linked modules followed by the base
    station itself, which carries the indoor readings.
    """
    stations = []
    for device in body.get("devices") or []:
        station_name = (
            device.get("station_name") or device.get("home_name") or device.get("_id") or "unknown"
        )
        modules = []
        for raw in list(device.get("modules") or []) + [device]:
            module = parse_module(raw, station_name)
            if module is not None:
                modules.append(module)
        stations.append(StationData(name=station_name, modules=modules))
    return stations


def _error_message(payload: Any) -> str:
    """Extract a readable message from a Netatmo error payload."""
    if not isinstance(payload, dict):
        return "unexpected response"
    error = payload.get("error")
    if isinstance(error, dict):
        return f"{error.get('message', 'unknown error')} (code {error.get('code')})"
    if error:
        description = payload.get("error_description")
        return f"{error}: {description}" if description else str(error)
    return "unexpected response"


class NetatmoSource(SensorSource):
    """Reads weather station data from the Netatmo API.

    Holds one aiohttp session and an OAuth2 access token for the process
    lifetime, refreshing the token shortly before it expires.
    """

    def __init__(self, config: NetatmoConfig, session: Optional[aiohttp.ClientSession] = None):
        """Initialize the source.

        Args:
            config: Netatmo credentials and timeouts.
            session: Optional aiohttp session to use instead of creating one.
        """
        self.config = config
        self._session = session
        self._owns_session = session is None
        self._access_token: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._expires_at = 0.0

    async def connect(self) -> None:
        """Open the HTTP session and authenticate with the password grant."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout)
            )
        await self._authenticate()
        logger.info("Connected to Netatmo API")

    async def fetch_all(self) -> List[StationData]:
        """Fetch the latest dashboard data of every station."""
        await self._ensure_token()
        payload = await self._call(
            "GET",
            NETATMO_STATIONS_URL,
            headers={"Authorization": f"Bearer {self._access_token}"},
        )
        body = payload.get("body")
        if not isinstance(body, dict):
            raise SourceError("Netatmo getstationsdata response has no body")
        return parse_stations(body)

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def _authenticate(self) -> None:
        await self._request_token({
            "grant_type": "password",
            "username": self.config.username,
            "password": self.config.password,
            "scope": "read_station",
        })

    async def _ensure_token(self) -> None:
        if self._access_token is None:
            raise SourceError("Not authenticated with Netatmo API")
        if time.monotonic() < self._expires_at - TOKEN_REFRESH_MARGIN:
            return

        if self._refresh_token:
            logger.info("Refreshing Netatmo access token")
            await self._request_token({
                "grant_type": "refresh_token",
                "refresh_token": self._refresh_token,
            })
        else:
            logger.info("Netatmo access token expired, authenticating again")
            await self._authenticate()

    async def _request_token(self, grant: Dict[str, str]) -> None:
        data = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            **grant,
        }
        payload = await self._call("POST", NETATMO_TOKEN_URL, data=data)

        access_token = payload.get("access_token")
        if not access_token:
            raise SourceError("Netatmo token response has no access_token")

        try:
            expires_in = float(payload.get("expires_in", 10800))
        except (TypeError, ValueError):
            expires_in = 10800.0

        self._access_token = access_token
        self._refresh_token = payload.get("refresh_token") or self._refresh_token
        self._expires_at = time.monotonic() + expires_in
        logger.debug(f"Got Netatmo access token, expires in {expires_in:.0f}s")

    async def _call(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Perform one API request and return the decoded JSON payload."""
        if self._session is None:
            raise SourceError("Netatmo session is not open")

        try:
            async with self._session.request(method, url, **kwargs) as response:
                try:
                    payload = await response.json(content_type=None)
                except ValueError:
                    payload = None

                if response.status >= 400 or not isinstance(payload, dict) or "error" in payload:
                    error = payload.get("error") if isinstance(payload, dict) else None
                    if isinstance(error, dict) and error.get("code") in TOKEN_ERROR_CODES:
                        # Force a token renewal on the next call
                        self._expires_at = 0.0
                    raise SourceError(
                        f"Netatmo API {url} returned HTTP {response.status}: "
                        f"{_error_message(payload)}"
                    )
                return payload
        except aiohttp.ClientError as e:
            raise SourceError(f"Netatmo API request to {url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise SourceError(f"Netatmo API request to {url} timed out") from e
