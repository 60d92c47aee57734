# Area: Connection
"""
Realtime room connection.

This package handles:
- The connection lifecycle state machine
- The transport seam (websockets by default)
- The ConnectionManager: connect, presence, send, reconnect, disconnect
"""

from .enums import ConnectionEvent, ConnectionState
from .manager import ConnectionManager
from .state_machine import (
    CLEAN_CLOSE_CODES,
    ConnectionStateMachine,
    is_clean_close,
    should_reconnect,
)
from .transport import (
    RoomConnection,
    Transport,
    WebsocketsConnection,
    WebsocketsTransport,
    build_room_url,
)

__all__ = [
    "ConnectionEvent",
    "ConnectionState",
    "ConnectionManager",
    "CLEAN_CLOSE_CODES",
    "ConnectionStateMachine",
    "is_clean_close",
    "should_reconnect",
    "RoomConnection",
    "Transport",
    "WebsocketsConnection",
    "WebsocketsTransport",
    "build_room_url",
]
