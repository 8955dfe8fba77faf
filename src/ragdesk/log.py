"""Logging setup for ragdesk.

Every module logs through ``logging.getLogger(__name__)``; the CLI calls
setup_logging() once to route the ``ragdesk`` logger to a Rich handler on
stderr. Model text is only ever logged as a short single-line snippet.
"""

from __future__ import annotations

import logging
import re

from rich.console import Console
from rich.logging import RichHandler

_LOGGER_NAME = "ragdesk"
_WS_RE = re.compile(r"\s+")


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure the ``ragdesk`` logger and return it.

    Args:
        verbose: Log at DEBUG instead of WARNING.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.handlers.clear()

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def snippet(text: str, max_chars: int = 160) -> str:
    """Collapse whitespace in *text* and cut it to *max_chars* (with '...')."""
    normalized = _WS_RE.sub(" ", text).strip()
    if len(normalized) <= max_chars:
        return normalized
    return normalized[:max_chars] + "..."
