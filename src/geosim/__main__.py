"""Command-line entry point: ``geosim --config data/config.json``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from geosim._logging import setup_logging
from geosim.config import GeoSimConfig
from geosim.exceptions import GeoSimError
from geosim.orchestrator import GeoSimulator

_LOGGER = logging.getLogger("geosim")


def _parse_args(argv: Sequence[str] | None, config: GeoSimConfig) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="geosim",
        description="Simulate vehicles moving along real road routes and stream their positions.",
    )
    parser.add_argument(
        "--config",
        default=config.config_path,
        help="Scenario JSON file (default: $GEOSIM_CONFIG_PATH or ./data/config.json).",
    )
    parser.add_argument(
        "--log-level",
        default=config.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Minimum log level.",
    )
    return parser.parse_args(argv)


async def run(config: GeoSimConfig, *, stop_event: asyncio.Event | None = None) -> None:
    """Run the scenario named by *config* until *stop_event* is set (or forever)."""
    stop_event = stop_event or asyncio.Event()
    async with GeoSimulator.from_file(config.config_path, config=config) as simulator:
        await simulator.setup()
        simulator.start()
        _LOGGER.info(
            "Running %d vehicle(s) with %d connector(s)",
            len(simulator.vehicles),
            len(simulator.connectors),
        )
        await stop_event.wait()


def main(argv: Sequence[str] | None = None) -> int:
    try:
        env_config = GeoSimConfig.from_env()
    except GeoSimError as exc:
        print(f"geosim: {exc}", file=sys.stderr)
        return 2

    args = _parse_args(argv, env_config)
    config = GeoSimConfig.from_env(config_path=args.config, log_level=args.log_level)
    setup_logging(config.log_level)

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        _LOGGER.info("Interrupted, shutting down")
    except GeoSimError as exc:
        _LOGGER.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
