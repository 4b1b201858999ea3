"""Logging utilities.

- iso_formatter: JSONL formatting with ISO 8601 timestamps
- setup: console formatter and configure_logging()
"""

from plex_auth.utils.logging.iso_formatter import ISO8601Formatter
from plex_auth.utils.logging.setup import ConsoleFormatter, configure_logging

__all__ = [
    "ConsoleFormatter",
    "ISO8601Formatter",
    "configure_logging",
]
