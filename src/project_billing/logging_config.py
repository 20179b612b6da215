"""Logging setup shared by the API and the command-line entry point."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Install a single stream handler on the package logger.

    Safe to call more than once; later calls only change the level.
    """
    logger = logging.getLogger("project_billing")
    logger.setLevel(level)

    if not any(getattr(h, "_project_billing", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._project_billing = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
