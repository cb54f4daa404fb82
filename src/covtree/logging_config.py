"""Logging setup for the covtree CLI."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> logging.Logger:
    """Route covtree logging through a rich handler on stderr.

    WARNING by default, DEBUG with *verbose*, ERROR with *quiet*.
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.WARNING

    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_time=verbose,
        show_path=verbose,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logger = logging.getLogger("covtree")
    logger.handlers = [handler]
    logger.setLevel(level)
    logger.propagate = False
    return logger
