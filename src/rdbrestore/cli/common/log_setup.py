"""Logging configuration for the CLI.

Core modules only create module loggers; the CLI attaches a single rich
handler that writes to the shared console, so log lines and live progress
rendering do not interleave badly.
"""

from __future__ import annotations

import logging

from rich.logging import RichHandler

from rdbrestore.cli.common.output import console

_LOGGER_NAME = "rdbrestore"


def configure_logging(verbose: bool = False) -> None:
    """Route `rdbrestore.*` loggers to the console (DEBUG when verbose)."""
    logger = logging.getLogger(_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = RichHandler(
        console=console,
        show_path=verbose,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
