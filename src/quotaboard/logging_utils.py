from __future__ import annotations

import logging
from typing import Optional

from rich.logging import RichHandler
from rich.markup import escape


def ensure_rich_logging(level: int = logging.INFO) -> None:
    """Attach a Rich handler to the quotaboard logger if none is configured."""

    logger = logging.getLogger("quotaboard")
    if logger.handlers:
        return

    handler = RichHandler(markup=True, rich_tracebacks=True)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def configure_logging(*, debug: bool = False, log_file: Optional[str] = None) -> None:
    """Route quotaboard logs for a full-screen session.

    A file handler is used when ``log_file`` is given; otherwise logging is
    limited to warnings so stray records do not paint over the UI.
    """

    logger = logging.getLogger("quotaboard")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG if debug else logging.INFO)
    else:
        logger.addHandler(logging.NullHandler())
        logger.setLevel(logging.WARNING)
    logger.propagate = False


def set_debug(debug: bool) -> None:
    logger = logging.getLogger("quotaboard")
    logger.setLevel(logging.DEBUG if debug else logging.INFO)


def style_text(message: str, style: str, *, escape_message: bool = True) -> str:
    if escape_message:
        message = escape(message)
    return f"[{style}]{message}[/{style}]"
