"""Logging setup.

Library modules only create named loggers (``logging.getLogger(__name__)``);
handlers are installed by applications. The CLI calls
:func:`configure_logging` once at startup.

Example:
    >>> import logging
    >>> from queuespine.core.logging import configure_logging
    >>> configure_logging("WARNING")
    >>> logging.getLogger("queuespine").level == logging.WARNING
    True
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Attach a stream handler to the ``queuespine`` logger.

    Calling it again only changes the level; no duplicate handlers.

    Args:
        level: Level name ("DEBUG", "INFO", ...) or numeric level.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger("queuespine")
    logger.setLevel(level)
    if not any(getattr(h, "_queuespine", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._queuespine = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
