"""Root logging setup for the uplink process."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Vehicle storage is small
LOG_FILE_MAX_BYTES = 1024 * 1024
LOG_FILE_BACKUPS = 3

# Per-request access lines from the status API are noise on the console
QUIET_LOGGERS = ("aiohttp.access",)

_installed: List[logging.Handler] = []


def parse_level(level: Union[int, str]) -> int:
    """Map ``"info"``/``"DEBUG"``/``20`` to a numeric logging level."""
    if isinstance(level, int):
        return level
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level '{level}'")
    return numeric


def _uninstall(root: logging.Logger) -> None:
    while _installed:
        handler = _installed.pop()
        root.removeHandler(handler)
        handler.close()


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    log_file: Optional[Union[str, Path]] = None,
    force: bool = False,
) -> None:
    """Send uplink logs to stdout and, if ``log_file`` is given, a rotating file.

    Once configured, later calls only adjust the level unless ``force`` is set;
    the CLI forces a rebuild after the config file has been read. Handlers
    installed by anyone else are left in place.
    """
    numeric = parse_level(level)
    root = logging.getLogger()
    root.setLevel(numeric)

    if _installed and not force:
        for handler in _installed:
            handler.setLevel(numeric)
        return

    _uninstall(root)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            path,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        ))

    for handler in handlers:
        handler.setLevel(numeric)
        handler.setFormatter(formatter)
        root.addHandler(handler)
        _installed.append(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["LOG_DATEFMT", "LOG_FORMAT", "configure_logging", "parse_level"]
