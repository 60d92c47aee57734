# Area: Shared
"""
duet_room._shared.logging_formatters — Logging formatters and filters
=====================================================================

Contains formatter/filter classes and the event display mode flag.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

# Flag to control event-only terminal output
_event_mode_enabled = False


class EventModeFilter(logging.Filter):
    """Filter that suppresses terminal logs when event display mode is on.

    In event display mode the EventLogger prints one line per room event
    instead of going through the standard logging handlers.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        return not _event_mode_enabled


class TerminalFormatter(logging.Formatter):
    """Colored formatter for terminal output."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        levelname = record.levelname
        record.levelname = f"{color}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            # The record is shared with the JSON file handler
            record.levelname = levelname


class JSONFormatter(logging.Formatter):
    """JSON formatter for file output."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("room_id", "slot", "event_type"):
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False)


def enable_event_mode() -> None:
    """Enable event display mode.

    In event display mode:
    - Standard logs are suppressed from the terminal
    - Room events and connection status lines are printed instead
    - File logging remains unchanged for debugging
    """
    global _event_mode_enabled
    _event_mode_enabled = True


def disable_event_mode() -> None:
    """Disable event display mode (restore standard logging)."""
    global _event_mode_enabled
    _event_mode_enabled = False


def is_event_mode_enabled() -> bool:
    """Check if event display mode is enabled."""
    return _event_mode_enabled
