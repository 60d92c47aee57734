# Area: Shared
"""
Shared utilities used by the connection, store and session layers.

This package contains:
- Logging configuration (terminal + JSON file)
- Event display mode and the room event logger
"""

from .event_logger import EventLogger
from .logging_config import (
    setup_logging,
    log_rejected_event,
    enable_event_mode,
    disable_event_mode,
    is_event_mode_enabled,
)

__all__ = [
    "EventLogger",
    "setup_logging",
    "log_rejected_event",
    "enable_event_mode",
    "disable_event_mode",
    "is_event_mode_enabled",
]
