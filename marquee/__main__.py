"""
Marquee - Entry Point

Run with: python -m marquee
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from marquee import __version__
from marquee.config import MarqueeConfig, get_config
from marquee.core import CoreError
from marquee.server import MarqueeServer


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="marquee",
        description="Marquee - track MPRIS media players and the one that is playing",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to a TOML config file (default: packaged defaults)",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host address for the web API (overrides config)",
    )

    parser.add_argument(
        "--web-port",
        type=int,
        default=None,
        help="Web API port (overrides config)",
    )

    parser.add_argument(
        "--no-web",
        action="store_true",
        help="Do not start the web API",
    )

    parser.add_argument(
        "--system-bus",
        action="store_true",
        help="Watch the system bus instead of the session bus",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser.parse_args(argv)


def apply_overrides(config: MarqueeConfig, args: argparse.Namespace) -> MarqueeConfig:
    """Apply command line overrides on top of the loaded config."""
    if args.host is not None:
        config.web.host = args.host
    if args.web_port is not None:
        config.web.port = args.web_port
    if args.no_web:
        config.web.enabled = False
    if args.system_bus:
        config.bus.type = "system"
    return config


async def run_server(config: MarqueeConfig) -> None:
    """Start and run the Marquee daemon."""
    server = MarqueeServer(config)
    await server.run()


def main() -> int:
    """Main entry point for the application."""
    args = parse_args()
    setup_logging(verbose=args.verbose)

    logger = logging.getLogger(__name__)
    logger.info("Starting Marquee %s...", __version__)

    try:
        config = apply_overrides(get_config(args.config), args)
        asyncio.run(run_server(config))
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
    except CoreError as e:
        logger.error("%s", e)
        return 1
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1

    logger.info("Marquee stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
