from __future__ import annotations

import logging
import sys

LOGGER_NAME = "minifqs"

logger = logging.getLogger(LOGGER_NAME)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
logger.setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Return a child of the package logger, e.g. ``minifqs.meter``."""
    return logger.getChild(name)


def set_verbose(verbose: bool) -> None:
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
