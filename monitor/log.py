"""Logging setup for the API process."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_HANDLER_NAME = "monitor-console"


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """Attach one console handler to the root logger and set its level.

    Calling this again only updates the level.
    """
    root = logging.getLogger()
    root.setLevel(level if isinstance(level, int) else str(level).upper())
    if not any(getattr(h, "name", None) == _HANDLER_NAME for h in root.handlers):
        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    return root
