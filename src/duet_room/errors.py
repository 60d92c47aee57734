"""
duet_room.errors — Custom exception classes
============================================

Defines the exception hierarchy for the realtime room layer.
Transport failures are never raised to callers; they are logged and
reflected in the connection status. The exceptions below cover malformed
wire data, access denial and misuse of the session lifecycle.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, List, Optional

from .error_formatter import format_error_block


class DuetRoomError(Exception):
    """Base exception for all duet_room errors."""
    pass


class InvalidEventError(DuetRoomError):
    """Raised when an inbound frame is not a valid room event."""

    def __init__(self, raw: Any, validation_errors: List[str]):
        self.raw = raw
        self.validation_errors = validation_errors
        super().__init__(f"Invalid room event: {validation_errors}")

    def format_error_log(self) -> str:
        return format_error_block(
            error_type="INVALID_ROOM_EVENT",
            raw_payload=self.raw,
            validation_errors=self.validation_errors,
        )


class AccessDeniedReason(Enum):
    """Why a participant may not enter a room."""
    ROOM_NOT_FOUND = "Room not found or has expired"
    PARTNER_MISSING = (
        "Both partners must join the room before starting the realtime experience"
    )
    NOT_JOINED = "You must join the room first"
    WRONG_ROOM = "You are not a member of this room"
    INVALID_CREDENTIALS = "Invalid user credentials for this room"
    LOAD_FAILED = "Failed to load room data"


class AccessDeniedError(DuetRoomError):
    """Raised when session bootstrap refuses entry to a room."""

    def __init__(self, room_id: str, reason: AccessDeniedReason):
        self.room_id = room_id
        self.reason = reason
        super().__init__(f"Access denied to room {room_id}: {reason.value}")


class SessionNotReadyError(DuetRoomError):
    """Raised when a connection is requested before the store is seeded."""
    pass


class ConnectionInUseError(DuetRoomError):
    """Raised when a manager bound to one (room, slot) is asked for another."""

    def __init__(self, active: tuple, requested: tuple, message: Optional[str] = None):
        self.active = active
        self.requested = requested
        super().__init__(
            message or f"Connection already active for {active}, cannot connect {requested}"
        )
