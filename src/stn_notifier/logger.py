# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Logging utilities for the notifier.

Modules obtain loggers through :func:`get_logger` and never attach handlers
themselves. Handler setup happens once, in the entry point, through
:func:`configure_logging`.

Example:
    Typical usage in a module::

        from stn_notifier.logger import get_logger

        logger = get_logger("smtp")
        logger.info("Connection established")
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

ROOT_LOGGER_NAME = "stn_notifier"
LOG_FILE_NAME = "stn_notifier.log"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(threadName)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str | None = None) -> logging.Logger:
    """Retrieve a logger in the notifier namespace.

    Args:
        name: Child logger name, e.g. ``"smtp"``. ``None`` returns the
            package root logger.

    Returns:
        A ``logging.Logger`` instance; no handlers are configured here.
    """
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def parse_level(level: str | int) -> int:
    """Convert a level name such as ``"debug"`` into its numeric value.

    Raises:
        ValueError: If the name is not a known logging level.
    """
    if isinstance(level, int):
        return level
    normalized = level.strip().upper()
    # TRACE maps onto DEBUG; stdlib logging has no finer level
    if normalized == "TRACE":
        normalized = "DEBUG"
    value = logging.getLevelName(normalized)
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def configure_logging(level: str | int = "INFO", log_dir: str | Path | None = "logs") -> list[logging.Handler]:
    """Configure console and hourly rotating file logging.

    Should be called once from the entry point. Existing root handlers are
    replaced (``force=True``) to avoid duplicate output.

    Args:
        level: Maximum verbosity, by name or number.
        log_dir: Directory for the rotating log file. ``None`` disables
            file logging.

    Returns:
        The installed handlers, so the caller can flush them on exit.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_dir is not None:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.TimedRotatingFileHandler(
                directory / LOG_FILE_NAME, when="H", encoding="utf-8"
            )
        )

    logging.basicConfig(
        level=parse_level(level),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
    get_logger().info("Logging initialised, max_level=%s", logging.getLevelName(parse_level(level)))
    return handlers
