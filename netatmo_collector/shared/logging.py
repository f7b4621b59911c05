"""Process-wide log setup for the collector."""

import logging
import sys
from typing import IO, Iterable, Optional

LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

# Client libraries that log every request at INFO/DEBUG
NOISY_LOGGERS = ("aiohttp", "asyncio", "influxdb_client", "urllib3")


def parse_level(level: str) -> int:
    """Map a level name such as "debug" to its logging constant.

    Unknown names fall back to INFO.
    """
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(
    level: str = "INFO",
    stream: Optional[IO[str]] = None,
    quiet_loggers: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """Send every record at or above level to stream (stderr by default).

    main() calls this twice, once with the command line level and again
    after the config file is read, so earlier handlers are replaced.
    """
    logging.basicConfig(
        level=parse_level(level),
        format=LOG_FORMAT,
        stream=stream or sys.stderr,
        force=True,
    )

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)
