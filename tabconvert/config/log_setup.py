"""
Logging configuration.

Routes the package loggers through rich's handler for terminal output.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "tabconvert"


def configure_logging(verbose: bool = False, console: Optional[Console] = None) -> logging.Logger:
    """Attach a RichHandler to the package logger.

    Calling it again replaces the previous handler rather than stacking.

    Args:
        verbose: Log at INFO instead of WARNING
        console: Console to write to (stderr by default)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=False
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO if verbose else logging.WARNING)
    return logger
