# src/logging/handlers.py — v1
"""Handler factories for workflow logs: console (stderr) and rotating file."""

from __future__ import annotations

import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TextIO

from genflow.logging.context import ContextFilter

_SIZE_PATTERN = re.compile(r"^(\d+)\s*(B|KB|MB|GB)$", re.IGNORECASE)
_UNITS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}


def _parse_size(size_str: str) -> int:
    """'10MB' -> 10485760. Suffixes B, KB, MB, GB, any case."""
    match = _SIZE_PATTERN.match(size_str.strip())
    if match is None:
        raise ValueError(f"Invalid size format: {size_str!r}. Use e.g. '10MB'.")
    return int(match.group(1)) * _UNITS[match.group(2).upper()]


def create_console_handler(stream: TextIO | None = None) -> logging.StreamHandler:
    """Handler writing to stderr; stdout is reserved for command output."""
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.addFilter(ContextFilter())
    return handler


def create_rotating_handler(
    log_file: str | Path,
    rotation: str = "10MB",
    retention: int = 30,
) -> RotatingFileHandler:
    """Create a size-rotated file handler, creating parent directories as needed.

    Args:
        log_file: Path to log file.
        rotation: Max file size before rotation (e.g. "10MB").
        retention: Number of rotated files kept next to the active one.
    """
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        filename=str(path),
        maxBytes=_parse_size(rotation),
        backupCount=retention,
        encoding="utf-8",
    )
    handler.addFilter(ContextFilter())
    return handler
