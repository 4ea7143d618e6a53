"""Command line entry point for the telemetry uplink."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
from pathlib import Path
from typing import Optional

from .app import UplinkApp
from .config import DEFAULT_CONFIG_PATH, SOURCE_KINDS, UplinkConfig
from .core.exceptions import ConfigurationError, NoPathsConfigured
from .core.logging_config import configure_logging
from .core.logging_utils import get_module_logger
from .supervisor import ExitReason

logger = get_module_logger("CLI")

LOG_LEVELS = ("critical", "error", "warning", "info", "debug")

EXIT_OK = 0
EXIT_SOURCE_STOPPED = 1
EXIT_CONFIG_ERROR = 2


def positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got '{value}'") from None
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {parsed}")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="telemetry-uplink",
        description="Stream vehicle GPS fixes to an ingestion endpoint over every available network path",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Configuration file (default: {DEFAULT_CONFIG_PATH.name} next to the package)",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default=None,
        help="Logging verbosity (overrides the config file)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this rotating file",
    )
    parser.add_argument(
        "--endpoint",
        metavar="HOST:PORT",
        default=None,
        help="Ingestion endpoint",
    )
    parser.add_argument(
        "--path",
        dest="paths",
        metavar="ID=IFACE",
        action="append",
        default=None,
        help="Network path as id=interface; repeat for each path (replaces configured paths)",
    )
    parser.add_argument(
        "--source",
        choices=SOURCE_KINDS,
        default=None,
        help="Where fixes come from",
    )
    parser.add_argument(
        "--serial-port",
        default=None,
        help="Serial device for --source serial",
    )
    parser.add_argument(
        "--status-port",
        type=positive_int,
        default=None,
        help="Port for the local status API",
    )
    parser.add_argument(
        "--no-status-api",
        action="store_true",
        help="Do not start the local status API",
    )
    return parser


async def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level or "info", log_file=args.log_file)

    try:
        config = await UplinkConfig.load_async(args.config, args)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG_ERROR

    configure_logging(config.log_level, force=True, log_file=config.log_file)

    try:
        app = UplinkApp(config)
    except NoPathsConfigured as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG_ERROR
    except (ConfigurationError, ValueError) as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG_ERROR

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, app.request_shutdown, sig.name)

    logger.info(
        "Uplink to %s:%d via %s (source=%s)",
        config.endpoint_host,
        config.endpoint_port,
        ", ".join(f"{p.id}={p.local_interface}" for p in config.paths),
        config.source,
    )
    report = await app.run()

    if report.reason is ExitReason.SOURCE_STOPPED:
        logger.warning("Fix source stopped: %s", report.detail)
        return EXIT_SOURCE_STOPPED
    return EXIT_OK


__all__ = ["build_parser", "main"]
