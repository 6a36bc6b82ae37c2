"""Logging setup for age-env.

Everything is logged to stderr through rich, stdout is reserved for
output meant to be evaluated by a shell.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

logger = logging.getLogger("age_env")

# -v / -vv on the command line
_VERBOSITY_MAP = {
    1: logging.INFO,
    2: logging.DEBUG,
}


def resolve_level(verbosity: int = 0, configured: str = "WARNING") -> int:
    """Pick a log level from the -v count, falling back to the configured name."""
    if verbosity:
        return _VERBOSITY_MAP.get(min(verbosity, 2))
    level = logging.getLevelName(configured.upper())
    return level if isinstance(level, int) else logging.WARNING


def setup_logging(level: int = logging.WARNING) -> None:
    """Attach a stderr RichHandler to the package logger. Safe to call twice."""
    logger.setLevel(level)
    for handler in logger.handlers:
        if isinstance(handler, RichHandler):
            handler.setLevel(level)
            return

    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
    )
    handler.setLevel(level)
    logger.addHandler(handler)
    logger.propagate = False
