from __future__ import annotations

import logging
import os
import sys
from typing import List

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

# Client/loop internals flood DEBUG output during a crawl.
_NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")


def resolve_level(level: str | int | None) -> int:
    """Map a level name (or None, meaning ``CRAWLER_LOG_LEVEL``) to a logging level."""
    if level is None:
        level = os.getenv("CRAWLER_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        return _LEVELS.get(level.strip().upper(), logging.INFO)
    return level


def setup_logging(level: str | int | None = None, log_file: str | None = None) -> None:
    """
    Configure crawler logging: stderr plus an optional log file, one format for
    every module. Calling it again replaces the previous configuration.
    """
    resolved = resolve_level(level)
    log_file = log_file or os.getenv("CRAWLER_LOG_FILE") or None

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(level=resolved, format=LOG_FORMAT, handlers=handlers, force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.INFO))
