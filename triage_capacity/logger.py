"""Logging for the triage_capacity modules.

Each module calls get_logger(__name__). Volumes go out at INFO, excluded
requests at DEBUG and clamped configuration at WARNING. Set TRIAGE_LOG_LEVEL
to DEBUG to see why requests dropped out of the capacity profile.
"""

import logging
from triage_capacity.config import LOG_LEVEL, LOG_FORMAT


def get_logger(name: str = "triage_capacity") -> logging.Logger:
    """Logger for one module, attached to stderr once however often it is requested."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, LOG_LEVEL.upper(), logging.INFO))
    return logger
