# Area: Shared
"""
duet_room._shared.event_logger — Room event display
===================================================

One colored line per room event and connection status change.
Lines are printed only in event display mode; every line also goes to
the DEBUG log so the file handler keeps a record.
"""

from __future__ import annotations
import logging
import sys
from datetime import datetime
from typing import Optional

from .logging_formatters import is_event_mode_enabled

logger = logging.getLogger("duet_room.events")

# ══════════════════════════════════════════════════════════════
# ANSI COLOR CODES
# ══════════════════════════════════════════════════════════════

GREEN = "\033[32m"         # Received events
BLUE = "\033[34m"          # Sent events
ORANGE = "\033[38;5;208m"  # Connection status
RED = "\033[31m"           # Dropped frames
RESET = "\033[0m"

# ══════════════════════════════════════════════════════════════
# EVENT TYPE → DISPLAY NAME
# ══════════════════════════════════════════════════════════════

DISPLAY_NAMES = {
    "category_fixed": "FIX-CATEGORY",
    "category_completed": "CATEGORY-DONE",
    "category_uncompleted": "CATEGORY-UNDONE",
    "progress_updated": "PROGRESS",
    "is_ready": "READY",
    "say": "CHAT",
    "ping": "PING",
    "leave": "LEAVE",
    "get_in": "GET-IN",
}


class EventLogger:
    """Display logger for room traffic."""

    def __init__(self, room_id: str = "", slot: str = ""):
        self._room_id = room_id
        self._slot = slot

    def set_context(self, room_id: str, slot: str) -> None:
        """Set the room and slot shown on each line."""
        self._room_id = room_id or ""
        self._slot = slot or ""

    def _now(self) -> str:
        return datetime.now().strftime("%H:%M:%S")

    def _emit(self, color: str, text: str, stream=None) -> None:
        logger.debug(text, extra={"room_id": self._room_id or None, "slot": self._slot or None})
        if is_event_mode_enabled():
            print(f"{color}{self._now()} | ROOM: {self._room_id:8} | SLOT: {self._slot:1} | "
                  f"{text}{RESET}", file=stream or sys.stdout)

    def log_received(self, event_type: str, from_slot: str, detail: Optional[str] = None) -> None:
        """Log an inbound event."""
        display = DISPLAY_NAMES.get(event_type, event_type)
        suffix = f" | {detail}" if detail else ""
        self._emit(GREEN, f"RECEIVED | from {from_slot} | {display:15}{suffix}")

    def log_sent(self, event_type: str, detail: Optional[str] = None) -> None:
        """Log an outbound event."""
        display = DISPLAY_NAMES.get(event_type, event_type)
        suffix = f" | {detail}" if detail else ""
        self._emit(BLUE, f"SENT     | {display:15}{suffix}")

    def log_dropped(self, description: str) -> None:
        self._emit(RED, f"DROPPED  | {description}", stream=sys.stderr)

    def log_status(self, connected: bool, note: str = "") -> None:
        """Log a connection status change."""
        status = "CONNECTED" if connected else "DISCONNECTED"
        suffix = f" | {note}" if note else ""
        self._emit(ORANGE, f"STATUS   | {status}{suffix}")
