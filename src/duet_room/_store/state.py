# Area: Store
"""
duet_room._store.state — In-memory room state
=============================================

Client-side view of both participants' progress, the chat history and the
connection status. Only the RoomStateStore mutates it.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

from ..events import Slot
from .slot_pair import SlotPair


@dataclass
class ChatLine:
    """A chat message as shown in the conversation view."""
    slot: Slot
    message: str
    timestamp: int  # ms since epoch, local clock


@dataclass
class SideState:
    """One participant's progress through the game."""
    name: str = ""
    emoji: str = ""
    role: str = ""
    fixed_category: Optional[str] = None
    completed_categories: List[str] = field(default_factory=list)
    progress: int = 0
    ready: bool = False
    last_ping_at: Optional[int] = None  # ms since epoch of the last ping received


def _empty_sides() -> SlotPair[SideState]:
    return SlotPair(a=SideState(), b=SideState())


@dataclass
class GameState:
    """
    Full realtime state of one room as seen by this client.

    ``sides`` is keyed by slot; ``my_*`` and ``partner_*`` are read
    shortcuts resolved through ``my_slot`` / ``partner_slot``.
    """
    my_slot: Slot = "a"
    partner_slot: Slot = "b"
    sides: SlotPair[SideState] = field(default_factory=_empty_sides)
    partner_online: bool = False
    chat_messages: List[ChatLine] = field(default_factory=list)
    unread_count: int = 0
    chat_open: bool = False
    connected: bool = False
    initialized: bool = False

    # ── Side accessors ───────────────────────────────────────

    @property
    def me(self) -> SideState:
        return self.sides.for_slot(self.my_slot)

    @property
    def partner(self) -> SideState:
        return self.sides.for_slot(self.partner_slot)

    @property
    def my_fixed_category(self) -> Optional[str]:
        return self.me.fixed_category

    @property
    def partner_fixed_category(self) -> Optional[str]:
        return self.partner.fixed_category

    @property
    def my_completed_categories(self) -> List[str]:
        return self.me.completed_categories

    @property
    def partner_completed_categories(self) -> List[str]:
        return self.partner.completed_categories

    @property
    def my_progress(self) -> int:
        return self.me.progress

    @property
    def partner_progress(self) -> int:
        return self.partner.progress

    @property
    def my_ready(self) -> bool:
        return self.me.ready

    @property
    def partner_ready(self) -> bool:
        return self.partner.ready
