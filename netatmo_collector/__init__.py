"""Netatmo Collector - gather Netatmo metrics and store them into InfluxDB."""

__version__ = "0.1.0"


def main(argv=None) -> int:
    """Entry point for the collector service.

    Returns:
        Process exit code: 0 after a signal-triggered shutdown, 1 if the
        configuration cannot be loaded or an external service is unreachable
        at startup.
    """
    import argparse
    import logging

    from .config import load_config
    from .service import run_service
    from .shared.config import ConfigError, get_config_path
    from .shared.errors import StartupError
    from .shared.logging import setup_logging

    parser = argparse.ArgumentParser(
        prog="netatmo-collector",
        description="Gather Netatmo metrics and store them into an InfluxDB database.",
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help=f"configuration file to load (default: {get_config_path()})",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="log every collected reading",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="override the log level from the configuration file",
    )
    args = parser.parse_args(argv)

    logger = logging.getLogger(__name__)
    setup_logging(args.log_level or "INFO")

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        logger.critical(str(e))
        return 1
    except ConfigError as e:
        logger.critical(f"Cannot load config file: {e}")
        return 1

    setup_logging(args.log_level or config.log_level)

    try:
        run_service(config, echo_points=args.verbose)
    except StartupError as e:
        logger.critical(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")

    return 0


__all__ = ["main"]
