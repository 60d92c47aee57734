# Area: Store
"""
duet_room._store.store — Room State Store
=========================================

Single source of truth for room state on this client.

- Seeded from the durable snapshot (``initialize_from_room_data``)
- Mutated by inbound events through a deterministic reducer
  (``handle_message``) and by local mutators for optimistic updates
- Read by consumers through ``state`` (a copy) and ``subscribe``

The store never sends anything. Callers pair each local mutator with the
matching outbound event (see RoomSession).
"""

from __future__ import annotations
import copy
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..events import (
    CATEGORY_COMPLETED,
    CATEGORY_FIXED,
    CATEGORY_UNCOMPLETED,
    CHAT_MESSAGE,
    LEAVE,
    PING,
    PRESENCE_ANNOUNCE,
    PROGRESS_UPDATED,
    READY,
    RoomEvent,
    Slot,
    other_slot,
)
from .slot_pair import SlotPair
from .snapshot import RoomSnapshot, SlotProfile
from .state import ChatLine, GameState, SideState

logger = logging.getLogger("duet_room.store")

Listener = Callable[[GameState], None]
Selector = Callable[[GameState], Any]
Reducer = Callable[[RoomEvent], bool]


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class _Subscription:
    listener: Listener
    selector: Optional[Selector]
    last_value: Any = None


def _side_from_profile(profile: SlotProfile) -> SideState:
    return SideState(
        name=profile.name,
        emoji=profile.emoji,
        role=profile.role,
        fixed_category=profile.fixed_category,
        completed_categories=list(profile.completed_categories),
        progress=profile.progress,
        ready=profile.ready,
    )


class RoomStateStore:
    """
    Holds the GameState for the current room and applies events to it.

    Usage:
        store = RoomStateStore()
        store.initialize_from_room_data(snapshot, "a")
        store.handle_message(event)
        unsubscribe = store.subscribe(render, selector=lambda s: s.partner_progress)
    """

    def __init__(self, clock: Callable[[], int] = _now_ms):
        self._clock = clock
        self._state = GameState()
        self._subscriptions: List[_Subscription] = []
        self._reducers: Dict[str, Reducer] = {}
        self._register_reducers()

    def _register_reducers(self) -> None:
        reg = self._reducers.__setitem__
        reg(PRESENCE_ANNOUNCE, self._on_presence_announce)
        reg(LEAVE, self._on_leave)
        reg(CATEGORY_FIXED, self._on_category_fixed)
        reg(CATEGORY_COMPLETED, self._on_category_completed)
        reg(CATEGORY_UNCOMPLETED, self._on_category_uncompleted)
        reg(PROGRESS_UPDATED, self._on_progress_updated)
        reg(READY, self._on_ready)
        reg(CHAT_MESSAGE, self._on_chat_message)
        reg(PING, self._on_ping)

    # ── Read side ────────────────────────────────────────────

    @property
    def state(self) -> GameState:
        """A copy of the current state; mutating it has no effect on the store."""
        return copy.deepcopy(self._state)

    @property
    def initialized(self) -> bool:
        return self._state.initialized

    @property
    def my_slot(self) -> Slot:
        return self._state.my_slot

    @property
    def partner_slot(self) -> Slot:
        return self._state.partner_slot

    def subscribe(
        self, listener: Listener, selector: Optional[Selector] = None
    ) -> Callable[[], None]:
        """
        Register a listener called with a state copy after each change.

        With a selector, the listener only runs when the selected value
        changes. Returns a function that removes the subscription.
        """
        sub = _Subscription(listener=listener, selector=selector)
        if selector is not None:
            sub.last_value = copy.deepcopy(selector(self._state))
        self._subscriptions.append(sub)

        def unsubscribe() -> None:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

        return unsubscribe

    def _notify(self) -> None:
        view = None
        for sub in list(self._subscriptions):
            if sub.selector is not None:
                value = sub.selector(self._state)
                if value == sub.last_value:
                    continue
                sub.last_value = copy.deepcopy(value)
            if view is None:
                view = copy.deepcopy(self._state)
            try:
                sub.listener(view)
            except Exception as e:
                logger.error(f"State listener failed: {e}", exc_info=True)

    # ── Seeding ──────────────────────────────────────────────

    def initialize_from_room_data(self, snapshot: RoomSnapshot, my_slot: Slot) -> None:
        """
        Seed the state from the durable snapshot.

        Idempotent: the same snapshot and slot always give the same state.
        Connection status and chat view flags are UI state and are kept.
        """
        partner_slot = other_slot(my_slot)
        partner_profile = snapshot.profile(partner_slot)

        self._state = GameState(
            my_slot=my_slot,
            partner_slot=partner_slot,
            sides=SlotPair(
                **{slot: _side_from_profile(profile) for slot, profile in snapshot.slots.items()}
            ),
            partner_online=partner_profile.online,
            chat_messages=[
                ChatLine(slot=entry.slot, message=entry.message, timestamp=entry.timestamp)
                for entry in snapshot.chat_messages
            ],
            unread_count=0,
            chat_open=self._state.chat_open,
            connected=self._state.connected,
            initialized=True,
        )
        logger.info(
            f"Room {snapshot.room_id} seeded: my slot {my_slot}, partner {partner_slot}",
            extra={"room_id": snapshot.room_id, "slot": my_slot},
        )
        self._notify()

    def reset(self) -> None:
        """Return to the initial, unseeded state."""
        self._state = GameState()
        self._notify()

    # ── Reducer ──────────────────────────────────────────────

    def handle_message(self, event: RoomEvent) -> None:
        """Apply one inbound event. Events before seeding are ignored."""
        if not self._state.initialized:
            logger.debug(f"Ignoring {event.type} before room data is loaded")
            return

        reducer = self._reducers.get(event.type)
        if reducer is None:
            logger.warning(f"No reducer for event type: {event.type}")
            return

        if reducer(event):
            self._notify()

    def _is_partner(self, slot: str) -> bool:
        return slot == self._state.partner_slot

    def _on_presence_announce(self, event: RoomEvent) -> bool:
        if not self._is_partner(event.slot) or self._state.partner_online:
            return False
        logger.info("Partner joined the room")
        self._state.partner_online = True
        return True

    def _on_leave(self, event: RoomEvent) -> bool:
        if not self._is_partner(event.slot) or not self._state.partner_online:
            return False
        logger.info("Partner left the room")
        self._state.partner_online = False
        return True

    def _on_category_fixed(self, event: RoomEvent) -> bool:
        side = self._state.sides.for_slot(event.slot)
        if side.fixed_category == event.category:
            return False
        side.fixed_category = event.category
        return True

    def _on_category_completed(self, event: RoomEvent) -> bool:
        side = self._state.sides.for_slot(event.slot)
        if event.category in side.completed_categories:
            return False
        side.completed_categories.append(event.category)
        return True

    def _on_category_uncompleted(self, event: RoomEvent) -> bool:
        side = self._state.sides.for_slot(event.slot)
        if event.category not in side.completed_categories:
            return False
        side.completed_categories.remove(event.category)
        return True

    def _on_progress_updated(self, event: RoomEvent) -> bool:
        # Last write wins; reordered updates may move progress backwards
        side = self._state.sides.for_slot(event.slot)
        if side.progress == event.progress:
            return False
        side.progress = event.progress
        return True

    def _on_ready(self, event: RoomEvent) -> bool:
        side = self._state.sides.for_slot(event.slot)
        if side.ready:
            return False
        side.ready = True
        return True

    def _on_chat_message(self, event: RoomEvent) -> bool:
        self._append_chat(event.slot, event.message)
        return True

    def _on_ping(self, event: RoomEvent) -> bool:
        side = self._state.sides.for_slot(event.slot)
        side.last_ping_at = self._clock()
        return True

    def _append_chat(self, slot: Slot, message: str) -> None:
        self._state.chat_messages.append(
            ChatLine(slot=slot, message=message, timestamp=self._clock())
        )
        if self._is_partner(slot) and not self._state.chat_open:
            self._state.unread_count += 1

    # ── Local mutators ───────────────────────────────────────

    def set_connected(self, connected: bool) -> None:
        if self._state.connected == connected:
            return
        self._state.connected = connected
        self._notify()

    def set_my_fixed_category(self, category: Optional[str]) -> None:
        self._state.me.fixed_category = category
        self._notify()

    def set_my_progress(self, progress: int) -> None:
        if isinstance(progress, bool) or not isinstance(progress, int):
            raise ValueError(f"Progress must be an integer, got {progress!r}")
        if not 0 <= progress <= 100:
            raise ValueError(f"Progress must be between 0 and 100, got {progress}")
        self._state.me.progress = progress
        self._notify()

    def reset_my_progress(self) -> None:
        self._state.me.progress = 0
        self._notify()

    def set_my_ready(self, ready: bool) -> None:
        self._state.me.ready = ready
        self._notify()

    def complete_my_category(self, category: str) -> None:
        """Mark a category done and clear the working selection."""
        me = self._state.me
        if category not in me.completed_categories:
            me.completed_categories.append(category)
        me.fixed_category = None
        me.progress = 0
        self._notify()

    def uncomplete_my_category(self, category: str) -> None:
        me = self._state.me
        if category in me.completed_categories:
            me.completed_categories.remove(category)
            self._notify()

    def add_chat_message(self, slot: Slot, message: str) -> None:
        self._append_chat(slot, message)
        self._notify()

    def set_chat_open(self, is_open: bool) -> None:
        """Open or close the chat view; opening marks everything read."""
        self._state.chat_open = is_open
        if is_open:
            self._state.unread_count = 0
        self._notify()
