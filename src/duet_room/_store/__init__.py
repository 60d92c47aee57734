# Area: Store
"""
Client-side room state.

This package handles:
- Parsing the durable room record into a two-slot snapshot
- The in-memory GameState
- The RoomStateStore reducer and its subscriptions
"""

from .slot_pair import SlotPair
from .snapshot import (
    CATEGORIES,
    RETENTION_WINDOW,
    ChatEntry,
    RoomSnapshot,
    SlotProfile,
    parse_timestamp,
)
from .state import ChatLine, GameState, SideState
from .store import RoomStateStore

__all__ = [
    "SlotPair",
    "CATEGORIES",
    "RETENTION_WINDOW",
    "ChatEntry",
    "RoomSnapshot",
    "SlotProfile",
    "parse_timestamp",
    "ChatLine",
    "GameState",
    "SideState",
    "RoomStateStore",
]
