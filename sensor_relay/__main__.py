"""Command-line entry point: ``python -m sensor_relay [device]``."""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from sensor_relay import protocol
from sensor_relay.app import run_relay
from sensor_relay.config import load_settings
from sensor_relay.errors import ConfigError, SinkError

logger = logging.getLogger("sensor_relay")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sensor-relay",
        description="Relay thermometer and CO2 monitor readings to a sink.",
    )
    parser.add_argument(
        "device",
        nargs="?",
        default=None,
        help=f"Serial device of the thermometer (default: $SERIAL_PORT or {protocol.DEFAULT_DEVICE})",
    )
    parser.add_argument(
        "--sink",
        choices=["influx", "rest", "sql"],
        default=None,
        help="Sink to write to (default: $SINK or influx)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: $LOG_LEVEL or INFO)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings(
            serial_port=args.device, sink=args.sink, log_level=args.log_level
        )
    except ConfigError as e:
        configure_logging("INFO")
        logger.error(str(e))
        return 1

    configure_logging(settings.log_level)

    try:
        asyncio.run(run_relay(settings))
    except (ConfigError, SinkError) as e:
        logger.error(f"Could not open {settings.sink} sink: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")

    return 0


if __name__ == "__main__":
    sys.exit(main())
