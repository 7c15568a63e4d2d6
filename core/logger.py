"""Logging helpers for the application.

Provides a convenience `get_logger` factory that configures a stream and
rotating file handler for consistent logging across modules. The log
directory can be moved with the `LOG_DIR` environment variable.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_DIR = os.environ.get("LOG_DIR") or os.path.join(os.path.dirname(__file__), "..", "logs")
if not os.path.exists(LOG_DIR):
    os.makedirs(LOG_DIR, exist_ok=True)

LOG_FILE = os.path.join(LOG_DIR, "app.log")

_formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")

_stream_handler = logging.StreamHandler()
_stream_handler.setFormatter(_formatter)

_file_handler = RotatingFileHandler(LOG_FILE, maxBytes=5 * 1024 * 1024, backupCount=3)
_file_handler.setFormatter(_formatter)


def get_logger(name: str = __name__, level: int = logging.INFO) -> logging.Logger:
    """Return a configured logger with stream and rotating file handlers.

    Handlers are attached once per logger name, so repeated calls from the
    same module do not duplicate output.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(level)
        logger.addHandler(_stream_handler)
        logger.addHandler(_file_handler)
    return logger


def set_level(level_name: str) -> None:
    """Apply a textual level (e.g. ``"DEBUG"``) to every logger created so far."""
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        return
    for name in list(logging.Logger.manager.loggerDict):
        logger = logging.getLogger(name)
        if _stream_handler in logger.handlers:
            logger.setLevel(level)
