"""Logger setup for plex-auth.

All components log to children of the "plex-auth" logger with dict
messages ({"event": ..., "message": ..., extra fields}). The package
attaches no handlers by itself; applications call configure_logging():

- stderr: ConsoleFormatter ("LEVEL: message")
- log_file (optional): ISO8601Formatter (JSONL)

Tokens, passphrases and private keys are never part of a log message.
"""

from __future__ import annotations

__all__ = [
    "ConsoleFormatter",
    "configure_logging",
]

import logging
import sys
from pathlib import Path
from typing import TextIO

from plex_auth.constants import APP_NAME
from plex_auth.utils.file_helpers import ensure_secure_directory
from plex_auth.utils.logging.iso_formatter import ISO8601Formatter


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output.

    Extracts 'message' or 'event' field from dict messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
        else:
            msg = record.getMessage()
        return f"{record.levelname}: {msg}"


def configure_logging(
    level: int | str = logging.INFO,
    log_file: Path | None = None,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Attach console (and optionally JSONL file) handlers to the package logger.

    Calling it again replaces the handlers it attached before.

    Args:
        level: Minimum level for both handlers.
        log_file: JSONL log file. Its directory is created owner-only.
        stream: Console stream (default: sys.stderr).

    Returns:
        The "plex-auth" logger.
    """
    logger = logging.getLogger(APP_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Close and remove existing handlers to avoid duplicates and leaks
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    console = logging.StreamHandler(stream or sys.stderr)
    console.setLevel(level)
    console.setFormatter(ConsoleFormatter())
    logger.addHandler(console)

    if log_file is not None:
        ensure_secure_directory(log_file.parent)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(ISO8601Formatter())
        logger.addHandler(file_handler)

    return logger
