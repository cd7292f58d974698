"""Logging setup for the terminal front-end.

Library modules log through ``logging.getLogger(__name__)`` under the
``consultstream`` namespace; this module attaches a Rich handler once.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

from .config import LogLevel

ROOT_LOGGER = "consultstream"


def configure_logging(level: str | int = "warning", console: Console | None = None) -> logging.Logger:
    """Attach a RichHandler to the package logger.

    Args:
        level: Level name ('debug', 'info', 'warning', 'error') or numeric level
        console: Optional Rich console to log into (defaults to stderr)

    Returns:
        The configured package logger
    """
    numeric = LogLevel.from_string(level) if isinstance(level, str) else level

    logger = logging.getLogger(ROOT_LOGGER)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    logger.propagate = False
    return logger
