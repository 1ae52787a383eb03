"""
Logging Setup
=============

All loggers live under the "petflix" namespace (modules use
``logging.getLogger(__name__)``), so one call controls the whole package.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from .security import redact_api_key

_ROOT = "petflix"
_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class RedactingFormatter(logging.Formatter):
    """Formatter that strips credentials from rendered records."""

    def format(self, record: logging.LogRecord) -> str:
        return redact_api_key(super().format(record))


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 3,
) -> logging.Logger:
    """
    Configure the petflix root logger.

    Args:
        level: Log level name
        log_file: Optional path to a rotating file log
        max_bytes: Max size before rotation
        backup_count: Number of backup files to keep

    Returns:
        The configured package logger

    Raises:
        ValueError: If level is not a valid log level name
    """
    upper = level.upper()
    if upper not in _VALID_LEVELS:
        raise ValueError(f"Invalid log level: {level!r}. Must be one of {sorted(_VALID_LEVELS)}")

    numeric = getattr(logging, upper)
    fmt = RedactingFormatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger(_ROOT)
    root.setLevel(numeric)

    # Avoid duplicate handlers on repeated calls
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(numeric)
    console.setFormatter(fmt)
    root.addHandler(console)

    if log_file:
        Path(log_file).expanduser().parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            Path(log_file).expanduser(),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric)
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)

    root.propagate = False
    return root
