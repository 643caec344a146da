"""Logging helpers for pcapstat."""

from __future__ import annotations

import logging
import os

PACKAGE_LOGGER = "pcapstat"
DEFAULT_LOG_LEVEL = logging.INFO
LOG_LEVEL_ENV = "PCAPSTAT_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def resolve_log_level(verbose: bool = False) -> int:
    """Pick DEBUG for ``--verbose``, else ``PCAPSTAT_LOG_LEVEL``, else INFO."""

    if verbose:
        return logging.DEBUG
    name = os.getenv(LOG_LEVEL_ENV, "").strip().upper()
    if not name:
        return DEFAULT_LOG_LEVEL
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else DEFAULT_LOG_LEVEL


def configure_logging(verbose: bool = False) -> int:
    """Configure root logging for the command line entrypoint; return the level used."""

    level = resolve_log_level(verbose)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    # basicConfig is a no-op once handlers exist; the package level still follows the flag.
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)
    return level


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-level logger, defaulting to the package logger."""

    return logging.getLogger(name if name else PACKAGE_LOGGER)


__all__ = ["configure_logging", "get_logger", "resolve_log_level"]
