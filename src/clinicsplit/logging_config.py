"""Logging setup for the clinicsplit CLI."""

import logging
import sys

LOGGER_NAME = "clinicsplit"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class _ClinicsplitHandler(logging.StreamHandler):
    """Stream handler installed by configure_logging."""


def verbosity_to_level(verbosity: int) -> int:
    """Map a -v count to a logging level."""
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def configure_logging(verbosity: int = 0) -> logging.Logger:
    """Send clinicsplit log records to stderr at the requested verbosity.

    Any handler installed by an earlier call is replaced, so the handler
    always writes to the current sys.stderr.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, _ClinicsplitHandler):
            logger.removeHandler(handler)

    handler = _ClinicsplitHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(verbosity_to_level(verbosity))
    return logger
