"""
Centralised logging configuration.

Logs to the console and, when ``settings.log_file`` is set, to a rotating file.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from fleetflow.app.core.config import settings

_configured = False


def configure_logging(level: str = None, log_file: str = None) -> None:
    """Install handlers on the root logger once per process."""
    global _configured
    if _configured:
        return
    _configured = True

    level = (level or settings.log_level).upper()
    log_file = log_file or settings.log_file

    fmt = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(fmt)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(console)

    if log_file:
        log_dir = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(log_dir, exist_ok=True)
        # Keeps the last 10 x 5MB files
        file_handler = RotatingFileHandler(
            filename=log_file,
            maxBytes=5 * 1024 * 1024,
            backupCount=10,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger. Call this at the top of every module."""
    return logging.getLogger(name)
