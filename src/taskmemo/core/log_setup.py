"""Logging setup shared by the server and terminal entrypoints."""

from __future__ import annotations

import logging

ROOT_LOGGER_NAME = "taskmemo"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """Attach one stream handler to the package logger and set its level.

    Safe to call more than once; later calls only change the level.
    """
    log = logging.getLogger(ROOT_LOGGER_NAME)
    if not log.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(handler)
    resolved = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    log.setLevel(resolved if isinstance(resolved, int) else logging.INFO)
    return log


def mask_token(token: str | None) -> str:
    if not token:
        return "(not set)"
    return token[:4] + "********" + token[-4:] if len(token) > 8 else "********"
