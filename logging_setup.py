#!/usr/bin/env python3
"""
logging_setup.py
================
Configures the root logger with a console handler and a rotating file
handler (``traffic.log``, 1 MB, 2 backups).

Call :func:`setup_logging` once at startup before the simulation is
built.
"""

import logging
from logging.handlers import RotatingFileHandler

from config import LOG_FILE, QLEARNING_DEBUG_LOG


def setup_logging(level: int = logging.INFO,
                  log_file: str = LOG_FILE,
                  debug_file: str = QLEARNING_DEBUG_LOG) -> None:
    """Apply a unified log format to both console and file output.

    Parameters
    ----------
    level : int
        Minimum severity level (e.g. ``logging.DEBUG``, ``logging.INFO``).
    log_file : str
        Main rotating log file.
    debug_file : str
        Rotating file receiving every controller decision at DEBUG.
    """
    root = logging.getLogger()
    root.setLevel(level)

    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(fmt)

    fh = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=2)
    fh.setLevel(level)
    fh.setFormatter(fmt)

    root.handlers.clear()
    root.addHandler(ch)
    root.addHandler(fh)

    # ── Dedicated debug file for the Q-learning decisions ─────────────
    controller_logger = logging.getLogger("controller")
    controller_logger.setLevel(logging.DEBUG)
    for handler in list(controller_logger.handlers):
        controller_logger.removeHandler(handler)
        handler.close()
    dfh = RotatingFileHandler(debug_file, maxBytes=5_000_000, backupCount=2)
    dfh.setLevel(logging.DEBUG)
    dfh.setFormatter(fmt)
    controller_logger.addHandler(dfh)
