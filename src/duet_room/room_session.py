# Area: Session
"""
duet_room.room_session — Room Session
=====================================

One participant's live session in one room. Ties together the state
store, the connection manager and the stored identity:

- Local actions update the store optimistically and send the matching
  event to the partner
- Inbound events go straight to the store reducer
- Connection status is mirrored into ``state.connected``
- Leaving announces the departure, closes cleanly and forgets the room

Everything is scoped to the instance; nothing is kept at module level.
"""

from __future__ import annotations
import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from .errors import SessionNotReadyError
from .events import (
    CategoryCompleted,
    CategoryFixed,
    CategoryUncompleted,
    ChatMessage,
    Leave,
    Ping,
    ProgressUpdated,
    Ready,
    RoomEvent,
    Slot,
)
from ._connection.manager import ConnectionManager
from ._store.state import GameState
from ._store.store import RoomStateStore, Selector
from .session import STORAGE_REFRESH_SECONDS, ActiveRoom, ActiveRoomStore

logger = logging.getLogger("duet_room.session.room")

LeftCallback = Callable[[], Union[None, Awaitable[None]]]


class RoomSession:
    """
    Realtime session for ``my_slot`` in ``room_id``.

    Usage:
        session = RoomSession("ABCD1234", "a", connection=manager, identities=identities)
        session.store.initialize_from_room_data(snapshot, "a")
        session.start()
        session.fix_category("animal")
        await session.leave_room()
    """

    def __init__(
        self,
        room_id: str,
        my_slot: Slot,
        connection: Optional[ConnectionManager] = None,
        identities: Optional[ActiveRoomStore] = None,
        store: Optional[RoomStateStore] = None,
        storage_refresh: float = STORAGE_REFRESH_SECONDS,
    ):
        self.room_id = room_id
        self.my_slot = my_slot
        self.store = store or RoomStateStore()
        self.connection = connection
        self.identities = identities
        self._unwatch: Optional[Callable[[], None]] = None
        self._closed = False
        self._pending_close: Optional[asyncio.Task] = None
        self.storage_refresh = storage_refresh
        self._refresh_task: Optional[asyncio.Task] = None

        if connection is not None:
            connection.on_event = self.store.handle_message
            connection.on_status = self.store.set_connected

    # ── Read side ────────────────────────────────────────────

    @property
    def state(self) -> GameState:
        return self.store.state

    @property
    def connected(self) -> bool:
        return self.connection is not None and self.connection.connected

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: Callable[[GameState], Any],
                  selector: Optional[Selector] = None) -> Callable[[], None]:
        return self.store.subscribe(listener, selector)

    # ── Lifecycle ────────────────────────────────────────────

    def start(self) -> None:
        """
        Connect and start watching the stored identity.

        File-backed storage is re-read every ``storage_refresh`` seconds so
        an identity cleared by another process closes this session.

        Raises:
            SessionNotReadyError: If the store was not seeded or no
                connection was given
        """
        if not self.store.initialized:
            raise SessionNotReadyError(
                f"Room {self.room_id} data must be loaded before connecting"
            )
        if self.connection is None:
            raise SessionNotReadyError(f"No connection configured for room {self.room_id}")

        self._closed = False
        self.connection.connect(self.room_id, self.my_slot)
        if self.identities is not None and self._unwatch is None:
            self._unwatch = self.identities.on_change(self._on_identity_change)
            if hasattr(self.identities.storage, "refresh"):
                self._refresh_task = asyncio.get_running_loop().create_task(
                    self._poll_storage(self.identities.storage)
                )

    def _on_identity_change(self, identity: Optional[ActiveRoom]) -> None:
        if self._closed:
            return
        if identity is not None and identity.room_id == self.room_id:
            return
        logger.info(f"Active room changed elsewhere, closing session for {self.room_id}")
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, cannot close session")
            return
        self._pending_close = loop.create_task(self.close("active room cleared"))

    async def _poll_storage(self, storage) -> None:
        while not self._closed:
            await asyncio.sleep(self.storage_refresh)
            try:
                storage.refresh()
            except Exception as e:
                logger.warning(f"Session storage refresh failed: {e}")

    def _stop_watching(self) -> None:
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None

    async def reconnect(self) -> None:
        """Manually re-open the connection."""
        if self.connection is None:
            raise SessionNotReadyError(f"No connection configured for room {self.room_id}")
        await self.connection.reconnect()

    async def leave_room(self, on_left: Optional[LeftCallback] = None) -> None:
        """
        Leave for good.

        Sends ``leave`` when open, closes without reconnecting, resets the
        state, forgets the stored identity, then calls ``on_left``.
        Safe to call when never connected.
        """
        logger.info(f"Leaving room {self.room_id}", extra={"room_id": self.room_id})
        self._closed = True
        self._stop_watching()
        if self.connection is not None:
            await self.connection.disconnect("leave room", farewell=Leave(slot=self.my_slot))
        self.store.reset()
        if self.identities is not None:
            self.identities.clear()
        if on_left is not None:
            result = on_left()
            if inspect.isawaitable(result):
                await result

    async def close(self, reason: str = "session closed") -> None:
        """Tear down the connection without announcing a departure."""
        self._closed = True
        self._stop_watching()
        if self.connection is not None:
            await self.connection.disconnect(reason)

    # ── Local actions ────────────────────────────────────────

    def _send(self, event: RoomEvent) -> bool:
        if self.connection is None:
            logger.warning(f"Not sending {event.type}: no connection")
            return False
        return self.connection.send(event)

    def fix_category(self, category: str) -> bool:
        """Select the category being worked on."""
        event = CategoryFixed(slot=self.my_slot, category=category)
        self.store.set_my_fixed_category(category)
        return self._send(event)

    def update_progress(self, progress: int) -> bool:
        """
        Raises:
            ValueError: If progress is not an integer in 0..100
        """
        self.store.set_my_progress(progress)
        return self._send(ProgressUpdated(slot=self.my_slot, progress=progress))

    def complete_category(self, category: str) -> bool:
        event = CategoryCompleted(slot=self.my_slot, category=category)
        self.store.complete_my_category(category)
        return self._send(event)

    def uncomplete_category(self, category: str) -> bool:
        event = CategoryUncompleted(slot=self.my_slot, category=category)
        self.store.uncomplete_my_category(category)
        return self._send(event)

    def mark_ready(self) -> bool:
        self.store.set_my_ready(True)
        return self._send(Ready(slot=self.my_slot))

    def say(self, message: str) -> bool:
        """Send a chat message. The gateway echo adds it to the log."""
        if not message.strip():
            return False
        return self._send(ChatMessage(slot=self.my_slot, message=message))

    def ping(self) -> bool:
        """Nudge the partner."""
        return self._send(Ping(slot=self.my_slot))

    def open_chat(self) -> None:
        self.store.set_chat_open(True)

    def close_chat(self) -> None:
        self.store.set_chat_open(False)
