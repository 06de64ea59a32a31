"""Logging configuration for nerdcalci."""

import sys

from loguru import logger

_FORMAT = "{level.icon} {message}"
_VERBOSE_FORMAT = (
    "<dim>{time:HH:mm:ss.SSS}</dim> {level.icon} <cyan>{name}:{line}</cyan> {message}"
)


def configure_logging(*, verbose: bool = False) -> None:
    """Send logs to stderr; verbose adds debug records with their timestamp and origin."""
    logger.remove()
    if verbose:
        logger.add(sys.stderr, level="DEBUG", format=_VERBOSE_FORMAT)
    else:
        logger.add(sys.stderr, level="INFO", format=_FORMAT)
