"""JSONL log formatting with ISO 8601 timestamps."""

from __future__ import annotations

__all__ = ["ISO8601Formatter"]

import json
import logging
from datetime import datetime, timezone


class ISO8601Formatter(logging.Formatter):
    """Formats records as one JSON object per line.

    Each entry starts with time (UTC, YYYY-MM-DDTHH:MM:SS.sssZ), level and
    logger, followed by the fields of a dict message or {"message": ...}
    for plain messages.

    Example:
        {"time": "2025-12-04T10:48:37.123Z", "level": "INFO",
         "logger": "plex-auth.auth.jwt", "event": "jwt_setup_complete", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )

        if isinstance(record.msg, dict):
            log_data = record.msg
        else:
            log_data = {"message": record.getMessage()}

        log_entry = {
            "time": timestamp,
            "level": record.levelname,
            "logger": record.name,
            **log_data,
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # default=str keeps paths and datetimes in extra fields serializable
        return json.dumps(log_entry, default=str)
