"""Logging configuration for the forge CLI."""

from __future__ import annotations

import logging

from forge_cli.cli.console import get_rich_console

PACKAGE_LOGGER = "forge_cli"


def level_for(verbosity: int, default: str = "WARNING") -> int:
    """Map ``-v`` count to a level.

    * no flag: *default* (``WARNING`` unless configured)
    * ``-v``: INFO, e.g. retries and config writes
    * ``-vv``: DEBUG, every request
    """
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    level = logging.getLevelName(default.upper())
    return level if isinstance(level, int) else logging.WARNING


def setup_logging(verbosity: int = 0, default: str = "WARNING") -> None:
    """Route the ``forge_cli`` logger through a Rich handler on stderr."""
    from rich.logging import RichHandler

    level = level_for(verbosity, default)
    handler = RichHandler(
        console=get_rich_console(),
        show_time=verbosity > 0,
        show_path=level <= logging.DEBUG,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.handlers = [handler]
    logger.propagate = False
