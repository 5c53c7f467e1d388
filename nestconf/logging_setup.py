"""Loguru sink configuration driven by :class:`~nestconf.options.LoggingOptions`."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from nestconf.options import LoggingOptions

_LEVEL_ALIASES = {
    "information": "INFO",
    "warn": "WARNING",
    "fatal": "CRITICAL",
}

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level: <8} | "
    "{process.id: <6} | "
    "{name}:{function}:{line} | "
    "{message}"
)


def normalize_level(level: str) -> str:
    """Map configuration level names onto loguru level names."""

    lowered = level.strip().lower()
    return _LEVEL_ALIASES.get(lowered, lowered.upper())


class LoggingConfigurator:
    """Installs console and rotating file sinks once per process."""

    def __init__(self) -> None:
        self.is_configured = False
        self.log_file_path: Optional[Path] = None
        self._handler_ids: list[int] = []

    def configure(self, options: Optional[LoggingOptions] = None, *, force: bool = False) -> None:
        if self.is_configured and not force:
            logger.debug("Logging already configured; skipping")
            return
        options = options or LoggingOptions()
        level = normalize_level(options.minimum_level)

        self.reset()
        logger.remove()
        if options.write_to_console:
            self._handler_ids.append(
                logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)
            )
        if options.write_to_file:
            self.log_file_path = Path(options.file_path)
            self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
            self._handler_ids.append(
                logger.add(
                    str(self.log_file_path),
                    format=FILE_FORMAT,
                    level=level,
                    rotation=options.rotation,
                    retention=options.retention,
                    enqueue=True,
                    backtrace=True,
                    diagnose=False,
                )
            )
        self.is_configured = True
        logger.debug("Logging configured at level {}", level)

    def reset(self) -> None:
        for handler_id in self._handler_ids:
            try:
                logger.remove(handler_id)
            except ValueError:
                # Handler already removed by a global logger.remove().
                continue
        self._handler_ids.clear()
        self.is_configured = False


_configurator = LoggingConfigurator()


def configure_logging(
    options: Optional[LoggingOptions] = None, *, force: bool = False
) -> LoggingConfigurator:
    """Configure process-wide logging from ``options``."""

    _configurator.configure(options, force=force)
    return _configurator


__all__ = ["LoggingConfigurator", "configure_logging", "normalize_level"]
