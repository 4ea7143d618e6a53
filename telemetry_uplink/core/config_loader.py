"""Loader for ``key = value`` configuration files."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import aiofiles

from .logging_utils import get_module_logger

logger = get_module_logger("ConfigLoader")


class ConfigLoader:
    """Reads ``config.txt`` style files.

    Blank lines and ``#`` comments are ignored, trailing ``# ...`` comments
    are stripped and, when ``defaults`` are supplied, each value is coerced to
    the type of its default.
    """

    @staticmethod
    def load(
        config_path: Path,
        defaults: Optional[Dict[str, Any]] = None,
        strict: bool = False,
    ) -> Dict[str, Any]:
        config = dict(defaults) if defaults else {}

        if not config_path.exists():
            if defaults:
                logger.debug("Config file not found at %s, using defaults", config_path)
            else:
                logger.warning("Config file not found at %s and no defaults provided", config_path)
            return config

        logger.debug("Loading config from: %s", config_path)
        try:
            with open(config_path, "r", encoding="utf-8") as fh:
                lines = fh.readlines()
        except OSError as exc:
            logger.error("Failed to read config file %s: %s", config_path, exc)
            return config

        config.update(ConfigLoader.parse_lines(lines, defaults, strict))
        logger.info("Loaded config from %s (%d values)", config_path, len(config))
        return config

    @staticmethod
    async def load_async(
        config_path: Path,
        defaults: Optional[Dict[str, Any]] = None,
        strict: bool = False,
    ) -> Dict[str, Any]:
        """Async variant of :meth:`load` reading the file with aiofiles."""
        config = dict(defaults) if defaults else {}

        if not await asyncio.to_thread(config_path.exists):
            logger.debug("Config file not found at %s, using defaults", config_path)
            return config

        try:
            async with aiofiles.open(config_path, "r", encoding="utf-8") as fh:
                lines = await fh.readlines()
        except OSError as exc:
            logger.error("Failed to read config file %s: %s", config_path, exc)
            return config

        config.update(ConfigLoader.parse_lines(lines, defaults, strict))
        logger.info("Loaded config from %s (%d values)", config_path, len(config))
        return config

    @staticmethod
    def parse_lines(
        lines: Iterable[str],
        defaults: Optional[Dict[str, Any]] = None,
        strict: bool = False,
    ) -> Dict[str, Any]:
        parsed: Dict[str, Any] = {}

        for line_num, raw_line in enumerate(lines, 1):
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue

            if "=" not in line:
                logger.warning("Invalid config line %d (missing '='): %s", line_num, line)
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip()

            if "#" in value:
                value = value.split("#", 1)[0].strip()

            if (value.startswith('"') and value.endswith('"')) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]

            if strict and defaults is not None and key not in defaults:
                logger.warning(
                    "Unknown config key '%s' (line %d) - ignored in strict mode",
                    key, line_num,
                )
                continue

            if defaults and key in defaults and defaults[key] is not None:
                parsed[key] = ConfigLoader._parse_value_with_type(value, defaults[key])
            else:
                parsed[key] = ConfigLoader._parse_value(value)

        return parsed

    @staticmethod
    def _parse_value(value: str) -> Any:
        value_lower = value.lower()
        if value_lower in ("true", "false", "yes", "no", "on", "off"):
            return value_lower in ("true", "yes", "on")

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    @staticmethod
    def _parse_value_with_type(value: str, default: Any) -> Any:
        target_type = type(default)
        if target_type is bool:
            return value.lower() in ("true", "yes", "on", "1")

        if target_type is int:
            try:
                return int(value, 0)
            except ValueError:
                logger.warning("Failed to parse '%s' as int, using default", value)
                return default

        if target_type is float:
            try:
                return float(value)
            except ValueError:
                logger.warning("Failed to parse '%s' as float, using default", value)
                return default

        return value


__all__ = ["ConfigLoader"]
