"""
duet_room — Realtime room layer for a two-player game
=====================================================

Coordinates two participants in one room over a realtime gateway:
a closed event protocol, a client-side state store with a deterministic
reducer, a self-healing connection, and a bootstrap that gates entry.

Quick Start:
    from duet_room import (
        ActiveRoomStore, ConnectionManager, JsonFileSnapshotSource,
        JsonFileStorage, SessionBootstrap, load_config, validate_config,
    )
    config = load_config()
    validate_config(config)
    bootstrap = SessionBootstrap(
        JsonFileSnapshotSource(config["snapshot_dir"]),
        ActiveRoomStore(JsonFileStorage(config["storage_path"])),
    )
    outcome, session = await bootstrap.enter_room(
        "ABCD1234", connection=ConnectionManager.from_config(config)
    )
    if outcome.granted:
        session.start()
        session.fix_category("animal")

Event Types
-----------
All room events are available for import:

    from duet_room import (
        CategoryFixed, CategoryCompleted, CategoryUncompleted,
        ProgressUpdated, Ready, ChatMessage, Ping, Leave, PresenceAnnounce,
    )
"""

from .config import load_config, validate_config
from .errors import (
    DuetRoomError,
    InvalidEventError,
    AccessDeniedReason,
    AccessDeniedError,
    SessionNotReadyError,
    ConnectionInUseError,
)
from .events import (
    Slot,
    RoomEvent,
    CategoryFixed,
    CategoryCompleted,
    CategoryUncompleted,
    ProgressUpdated,
    Ready,
    ChatMessage,
    Ping,
    Leave,
    PresenceAnnounce,
    decode_event,
    encode_event,
    event_to_dict,
    other_slot,
    with_room,
)
from ._connection import ConnectionManager, ConnectionState, WebsocketsTransport
from ._store import GameState, RoomSnapshot, RoomStateStore, SlotPair
from ._shared import setup_logging, enable_event_mode, disable_event_mode
from .session import (
    ActiveRoom,
    ActiveRoomStore,
    BootstrapOutcome,
    InMemorySnapshotSource,
    JsonFileSnapshotSource,
    JsonFileStorage,
    MemoryStorage,
    SessionBootstrap,
)
from .room_session import RoomSession

__all__ = [
    # Main classes
    "RoomSession",
    "SessionBootstrap",
    "ConnectionManager",
    "RoomStateStore",
    # Configuration and logging
    "load_config",
    "validate_config",
    "setup_logging",
    "enable_event_mode",
    "disable_event_mode",
    # Errors
    "DuetRoomError",
    "InvalidEventError",
    "AccessDeniedReason",
    "AccessDeniedError",
    "SessionNotReadyError",
    "ConnectionInUseError",
    # Events
    "Slot",
    "RoomEvent",
    "CategoryFixed",
    "CategoryCompleted",
    "CategoryUncompleted",
    "ProgressUpdated",
    "Ready",
    "ChatMessage",
    "Ping",
    "Leave",
    "PresenceAnnounce",
    "decode_event",
    "encode_event",
    "event_to_dict",
    "other_slot",
    "with_room",
    # State
    "ConnectionState",
    "WebsocketsTransport",
    "GameState",
    "RoomSnapshot",
    "SlotPair",
    # Session
    "ActiveRoom",
    "ActiveRoomStore",
    "BootstrapOutcome",
    "InMemorySnapshotSource",
    "JsonFileSnapshotSource",
    "JsonFileStorage",
    "MemoryStorage",
]
__version__ = "1.0.0"
