"""Logging setup for the command line"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional


LOGGER_NAME = "docsync"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
MAX_LOG_BYTES = 1024 * 1024


class _ConsoleHandler(logging.StreamHandler):
    """Stream handler that always writes to the current sys.stderr."""

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


def configure_logging(level: str = "WARNING", log_file: Optional[str] = None) -> logging.Logger:
    """Install console (and optional rotating file) handlers on the docsync logger.

    Handlers installed by an earlier call are replaced, so commands can call
    this once each without stacking duplicate output.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))

    for handler in list(logger.handlers):
        if getattr(handler, "_docsync_managed", False):
            logger.removeHandler(handler)
            handler.close()

    console = _ConsoleHandler()
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    console._docsync_managed = True  # type: ignore[attr-defined]
    logger.addHandler(console)

    if log_file:
        file_handler = RotatingFileHandler(log_file, maxBytes=MAX_LOG_BYTES, backupCount=3, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        file_handler._docsync_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    return logger
