#!/usr/bin/env python3
"""
logging_setup.py
================
Configures the root logger with a console handler and a rotating file
handler (``signal_sim.log``, 1 MB, 2 backups).

Call :func:`setup_logging` once at startup, before the simulation starts
emitting records.
"""

import logging
from logging.handlers import RotatingFileHandler


def setup_logging(level: int = logging.INFO) -> None:
    """Apply a unified log format to both console and file output.

    Parameters
    ----------
    level : int
        Minimum severity level (e.g. ``logging.DEBUG``, ``logging.INFO``).
    """
    root = logging.getLogger()
    root.setLevel(level)

    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(fmt)

    fh = RotatingFileHandler("signal_sim.log", maxBytes=1_000_000, backupCount=2)
    fh.setLevel(level)
    fh.setFormatter(fmt)

    root.handlers.clear()
    root.addHandler(ch)
    root.addHandler(fh)

    # ── Dedicated debug file for per-decision controller traces ───────
    controller_logger = logging.getLogger("controller")
    controller_logger.setLevel(logging.DEBUG)
    for handler in list(controller_logger.handlers):
        if isinstance(handler, RotatingFileHandler):
            controller_logger.removeHandler(handler)
            handler.close()
    dfh = RotatingFileHandler(
        "controller_debug.log", maxBytes=5_000_000, backupCount=2
    )
    dfh.setLevel(logging.DEBUG)
    dfh.setFormatter(fmt)
    controller_logger.addHandler(dfh)
