"""Logging setup for the ``retried`` logger tree."""

from __future__ import annotations

import logging as py_logging
import os
import sys
from pathlib import Path
from typing import TextIO

LOGGER_NAME = "retried"
LOG_LEVELS = {
    "DEBUG": py_logging.DEBUG,
    "INFO": py_logging.INFO,
    "WARN": py_logging.WARNING,
    "ERROR": py_logging.ERROR,
}
LOG_LEVEL_ENV = "RETRIED_LOG_LEVEL"
CACHE_HOME_ENV = "XDG_CACHE_HOME"
LOG_FILE_NAME = "retried.log"
_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d %(message)s"


def normalize_level(level: str) -> str:
    normalized = level.strip().upper()
    if normalized == "WARNING":
        return "WARN"
    return normalized


def default_log_path() -> Path:
    """``$XDG_CACHE_HOME/retried/retried.log``, falling back to ``~/.cache``."""
    cache_home = os.getenv(CACHE_HOME_ENV, "").strip()
    if cache_home:
        base = Path(cache_home).expanduser()
    else:
        try:
            base = Path.home() / ".cache"
        except RuntimeError:
            base = Path.cwd() / ".cache"
    return (base / LOGGER_NAME / LOG_FILE_NAME).resolve()


def _open_file_handler(log_file: str | Path) -> py_logging.Handler | None:
    log_path = Path(log_file).expanduser().resolve()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = py_logging.FileHandler(log_path, encoding="utf-8")
    except OSError:
        return None
    handler.setLevel(py_logging.DEBUG)
    return handler


def configure_logging(
    level: str | None = None,
    stream: TextIO | None = None,
    *,
    log_file: str | Path | None = None,
) -> py_logging.Logger:
    """Route the ``retried`` loggers to ``stream`` and, optionally, a debug file.

    ``level`` falls back to ``$RETRIED_LOG_LEVEL`` and then to INFO; unknown
    names also mean INFO. A log file that cannot be opened is skipped.
    """
    name = normalize_level(level or os.getenv(LOG_LEVEL_ENV, "") or "INFO")
    resolved = LOG_LEVELS.get(name, py_logging.INFO)
    formatter = py_logging.Formatter(_FORMAT)

    logger = py_logging.getLogger(LOGGER_NAME)
    logger.setLevel(py_logging.DEBUG if log_file else resolved)
    logger.handlers.clear()

    handler = py_logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    if log_file:
        file_handler = _open_file_handler(log_file)
        if file_handler is None:
            logger.setLevel(resolved)
            logger.warning("Cannot open log file %s; logging to stream only", log_file)
        else:
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    logger.propagate = False
    return logger
