"""Logging setup for the mdcite CLI.

Library modules only ever do::

    log = logging.getLogger(__name__)

and leave handlers alone. The CLI calls ``configure_logging`` once per
invocation, which routes the ``mdcite`` logger to stderr so reports on stdout
stay machine-readable.

Level, highest precedence first:
    - ``mdcite --verbose``: DEBUG (resolution steps, cache hits)
    - MDCITE_LOG_LEVEL: any standard level name
    - WARNING otherwise (duplicate basenames, unreadable directories)
"""

import logging
import os
import sys

LOG_LEVEL_ENV = "MDCITE_LOG_LEVEL"
DEFAULT_LEVEL = logging.WARNING
LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


class StderrHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stderr`` is at emit time.

    Test runners swap ``sys.stderr`` per invocation; a plain StreamHandler
    would keep writing to the first, since-closed stream.
    """

    def __init__(self) -> None:
        super().__init__()

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value) -> None:
        pass


def resolve_level(verbose: bool = False) -> int:
    """Numeric level from the --verbose flag or MDCITE_LOG_LEVEL."""
    if verbose:
        return logging.DEBUG
    name = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    if not name:
        return DEFAULT_LEVEL
    level = logging.getLevelName(name)
    # getLevelName returns "Level X" for unknown names
    return level if isinstance(level, int) else DEFAULT_LEVEL


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Attach the stderr handler to the ``mdcite`` logger and set its level.

    Safe to call repeatedly: one handler is installed, and each call applies
    the newly resolved level.
    """
    logger = logging.getLogger("mdcite")
    level = resolve_level(verbose)

    handler = next((h for h in logger.handlers if isinstance(h, StderrHandler)), None)
    if handler is None:
        handler = StderrHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    handler.setLevel(level)
    logger.setLevel(level)
    return logger
