"""
Project-wide logging setup for nutwatch.

Provides a simple, consistent console logger with optional JSON output.
Controlled via environment variables:
- NUTWATCH_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: INFO)
- NUTWATCH_LOG_FORMAT: text|json (default: text)
"""
from __future__ import annotations

import logging
import os
from typing import Optional

TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def _get_level() -> int:
    level = os.getenv("NUTWATCH_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level, logging.INFO)


def _build_formatter() -> logging.Formatter:
    fmt = os.getenv("NUTWATCH_LOG_FORMAT", "text").lower()
    if fmt == "json":
        from pythonjsonlogger.json import JsonFormatter

        return JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"levelname": "level", "name": "logger"},
        )
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(
    force: bool = False,
    *,
    level: Optional[int] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Configure root logging for console output.

    If a handler is already present and force is False, this is a no-op.
    An explicit level overrides NUTWATCH_LOG_LEVEL.
    """
    target_logger = logger or logging.getLogger()
    if target_logger.handlers and not force:
        return

    if force:
        for h in list(target_logger.handlers):
            target_logger.removeHandler(h)

    target_logger.setLevel(level if level is not None else _get_level())

    handler = logging.StreamHandler()
    handler.setFormatter(_build_formatter())
    target_logger.addHandler(handler)
