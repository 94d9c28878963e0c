"""In-memory capture of recent log records for the debug panel.

When ``debug_mode`` is on, the package logger is lowered to DEBUG and its
records are kept in a bounded buffer the UI can fetch.
"""

from __future__ import annotations

import logging
from collections import deque

PACKAGE_LOGGER = "rpg_companion"
MAX_ENTRIES = 500


class DebugLogHandler(logging.Handler):
    def __init__(self, capacity: int = MAX_ENTRIES) -> None:
        super().__init__(level=logging.DEBUG)
        self.entries: deque[dict] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        self.entries.append({
            "timestamp": int(record.created * 1000),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        })

    def clear(self) -> None:
        self.entries.clear()


debug_handler = DebugLogHandler()


def set_debug_mode(enabled: bool) -> None:
    """Attach or detach the capture handler on the package logger."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    if enabled:
        logger.setLevel(logging.DEBUG)
        if debug_handler not in logger.handlers:
            logger.addHandler(debug_handler)
    else:
        logger.setLevel(logging.NOTSET)
        logger.removeHandler(debug_handler)


def recent_logs(limit: int | None = None) -> list[dict]:
    entries = list(debug_handler.entries)
    return entries[-limit:] if limit else entries
