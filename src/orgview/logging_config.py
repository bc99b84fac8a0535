"""Logging configuration for the orgview CLI."""

from __future__ import annotations

import logging
import sys


LOGGER_NAME = "orgview"
STDOUT_HANDLER_NAME = "orgview-stdout"


def _stdout_handler(logger: logging.Logger) -> logging.Handler | None:
    for handler in logger.handlers:
        if handler.get_name() == STDOUT_HANDLER_NAME:
            return handler
    return None


def configure_logging(verbose: bool) -> None:
    """Route orgview progress messages to stdout when verbose.

    Only the handler installed here is recognised on repeated calls, so handlers added by
    other code (such as test log capture) neither block nor duplicate it.

    Args:
        verbose: Whether to enable INFO logging to stdout
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.propagate = False
    existing = _stdout_handler(logger)

    if not verbose:
        logger.setLevel(logging.WARNING)
        if existing is not None:
            logger.removeHandler(existing)
        return

    logger.setLevel(logging.INFO)
    if existing is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(STDOUT_HANDLER_NAME)
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
