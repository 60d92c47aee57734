# Area: Connection
"""
duet_room._connection.manager — Room Connection Manager
=======================================================

Owns the realtime socket for one (room, slot) pair.

Lifecycle:
1. connect() opens the socket (never twice for the same pair)
2. After a short settle delay, a presence announcement is sent
3. Inbound frames are decoded and handed to ``on_event``
4. An abnormal close after a successful open is retried once after
   ``reconnect_delay``; a failed open is never retried
5. disconnect() stops reconnection, flushes an optional farewell
   and closes cleanly

Transport errors never reach callers. They are logged and reflected
in ``connected``.
"""

from __future__ import annotations
import asyncio
import itertools
import logging
from typing import Any, Callable, Dict, Optional

from ..errors import ConnectionInUseError, InvalidEventError
from ..events import PresenceAnnounce, RoomEvent, decode_event, encode_event, with_room
from .._shared.event_logger import EventLogger
from .._shared.logging_config import log_rejected_event
from .enums import ConnectionEvent, ConnectionState
from .state_machine import ConnectionStateMachine, is_clean_close, should_reconnect
from .transport import Frame, RoomConnection, Transport, WebsocketsTransport, build_room_url

logger = logging.getLogger("duet_room.connection")

EventCallback = Callable[[RoomEvent], None]
StatusCallback = Callable[[bool], None]


def _event_detail(event: RoomEvent) -> Optional[str]:
    for attr in ("category", "progress", "message"):
        value = getattr(event, attr, None)
        if value is not None:
            return f"{attr}={value}"
    return None


class ConnectionManager:
    """
    Realtime connection for one participant in one room.

    Usage:
        manager = ConnectionManager("wss://gateway.example", on_event=store.handle_message)
        manager.connect("ABCD1234", "a")       # inside a running event loop
        manager.send(CategoryFixed(slot="a", category="animal"))
        await manager.disconnect("done", farewell=Leave(slot="a"))
    """

    def __init__(
        self,
        gateway_url: str,
        on_event: Optional[EventCallback] = None,
        on_status: Optional[StatusCallback] = None,
        transport: Optional[Transport] = None,
        reconnect_delay: float = 3.0,
        presence_settle: float = 0.1,
        send_retry_delay: float = 0.5,
        drain_timeout: float = 1.0,
        event_logger: Optional[EventLogger] = None,
    ):
        self.gateway_url = gateway_url
        self.on_event = on_event
        self.on_status = on_status
        self._transport = transport or WebsocketsTransport()
        self._reconnect_delay = reconnect_delay
        self._presence_settle = presence_settle
        self._send_retry_delay = send_retry_delay
        self._drain_timeout = drain_timeout
        self._event_logger = event_logger or EventLogger()

        self._sm = ConnectionStateMachine()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._room_id: Optional[str] = None
        self._slot: Optional[str] = None
        self._conn: Optional[RoomConnection] = None
        self._outbox: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None

        self._presence_handle: Optional[asyncio.TimerHandle] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._retry_handles: Dict[int, asyncio.TimerHandle] = {}
        self._retry_ids = itertools.count(1)

        self._connected = False
        self._stopped = False
        self._opened_this_attempt = False
        self._intentional_close = False

    @classmethod
    def from_config(cls, config: Dict[str, Any], **kwargs) -> "ConnectionManager":
        """Build a manager from a validated config dict."""
        kwargs.setdefault(
            "transport", WebsocketsTransport(open_timeout=config["open_timeout_seconds"])
        )
        return cls(
            config["ws_gateway_url"],
            reconnect_delay=config["reconnect_delay_seconds"],
            presence_settle=config["presence_settle_seconds"],
            send_retry_delay=config["send_retry_seconds"],
            **kwargs,
        )

    # ── Status ───────────────────────────────────────────────

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def state(self) -> ConnectionState:
        return self._sm.current_state

    @property
    def room_id(self) -> Optional[str]:
        return self._room_id

    @property
    def slot(self) -> Optional[str]:
        return self._slot

    def _set_connected(self, connected: bool, note: str = "") -> None:
        if self._connected == connected:
            return
        self._connected = connected
        self._event_logger.log_status(connected, note)
        if self.on_status is not None:
            try:
                self.on_status(connected)
            except Exception as e:
                logger.error(f"Status callback failed: {e}", exc_info=True)

    # ── Connect ──────────────────────────────────────────────

    def connect(self, room_id: str, slot: str) -> None:
        """
        Open the room connection. Must be called from a running event loop.

        No-op while already connecting or open for the same pair.

        Raises:
            ConnectionInUseError: If active for a different (room, slot)
        """
        if self._sm.is_active:
            if (room_id, slot) == (self._room_id, self._slot):
                logger.debug(f"Already {self.state.value} for room {room_id}, ignoring connect")
                return
            raise ConnectionInUseError(
                active=(self._room_id, self._slot), requested=(room_id, slot)
            )

        self._loop = asyncio.get_running_loop()
        self._room_id = room_id
        self._slot = slot
        self._stopped = False
        self._cancel_reconnect()
        self._event_logger.set_context(room_id, slot)
        self._sm.transition(ConnectionEvent.CONNECT)
        self._start_attempt()

    def _start_attempt(self) -> None:
        self._opened_this_attempt = False
        self._intentional_close = False
        url = build_room_url(self.gateway_url, self._room_id, self._slot)
        logger.info(
            f"Connecting to room {self._room_id} as slot {self._slot}",
            extra={"room_id": self._room_id, "slot": self._slot},
        )
        self._task = self._loop.create_task(self._run_connection(url))

    async def _run_connection(self, url: str) -> None:
        try:
            conn = await self._transport.open(url)
        except Exception as e:
            logger.warning(f"Could not open room connection: {e}")
            self._sm.transition(ConnectionEvent.OPEN_FAILED)
            self._event_logger.log_status(False, "open failed")
            return

        self._conn = conn
        self._outbox = asyncio.Queue()
        self._sm.transition(ConnectionEvent.OPENED)
        self._opened_this_attempt = True
        writer = self._loop.create_task(self._write_loop(conn, self._outbox))
        self._set_connected(True)
        self._presence_handle = self._loop.call_later(
            self._presence_settle, self._announce_presence
        )

        try:
            async for frame in conn.messages():
                self._dispatch(frame)
        except asyncio.CancelledError:
            self._intentional_close = True
            raise
        finally:
            writer.cancel()
            self._on_closed(conn)

    async def _write_loop(self, conn: RoomConnection, outbox: asyncio.Queue) -> None:
        while True:
            text = await outbox.get()
            try:
                await conn.send(text)
            except Exception as e:
                logger.warning(f"Send failed: {e}")
            finally:
                outbox.task_done()

    def _announce_presence(self) -> None:
        self._presence_handle = None
        if self._sm.current_state == ConnectionState.OPEN and self._slot:
            self.send(PresenceAnnounce(slot=self._slot))

    # ── Inbound ──────────────────────────────────────────────

    def _dispatch(self, frame: Frame) -> None:
        try:
            event = decode_event(frame)
        except InvalidEventError as e:
            log_rejected_event(e)
            self._event_logger.log_dropped("; ".join(e.validation_errors))
            return

        self._event_logger.log_received(event.type, event.slot, _event_detail(event))
        if self.on_event is None:
            return
        try:
            self.on_event(event)
        except Exception as e:
            logger.error(f"Event callback failed for {event.type}: {e}", exc_info=True)

    # ── Outbound ─────────────────────────────────────────────

    def send(self, event: RoomEvent) -> bool:
        """
        Send one event, stamped with the room id.

        Returns True when the frame was queued on an open socket. While
        connecting, the send is retried once after ``send_retry_delay``.
        Otherwise the event is dropped with a warning.
        """
        return self._send(event, allow_retry=True)

    def _send(self, event: RoomEvent, allow_retry: bool) -> bool:
        if self._room_id is None:
            logger.warning(f"Dropping {event.type}: no room connection")
            return False

        stamped = with_room(event, self._room_id)
        state = self._sm.current_state

        if state == ConnectionState.OPEN and self._outbox is not None:
            self._outbox.put_nowait(encode_event(stamped))
            self._event_logger.log_sent(stamped.type, _event_detail(stamped))
            return True

        if state == ConnectionState.CONNECTING and allow_retry:
            token = next(self._retry_ids)
            self._retry_handles[token] = self._loop.call_later(
                self._send_retry_delay, self._retry_send, token, stamped
            )
            logger.debug(f"Socket still connecting, retrying {event.type} shortly")
            return False

        logger.warning(f"Dropping {event.type}: connection is {state.value}")
        self._event_logger.log_dropped(f"{event.type} while {state.value}")
        return False

    def _retry_send(self, token: int, event: RoomEvent) -> None:
        self._retry_handles.pop(token, None)
        self._send(event, allow_retry=False)

    async def _drain(self) -> None:
        if self._outbox is None:
            return
        try:
            await asyncio.wait_for(self._outbox.join(), timeout=self._drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Outbox not drained within {self._drain_timeout}s")

    # ── Close handling ───────────────────────────────────────

    def _on_closed(self, conn: RoomConnection) -> None:
        self._cancel_presence()
        if self._conn is conn:
            self._conn = None
            self._outbox = None
        if self._sm.current_state != ConnectionState.OPEN:
            return

        code = conn.close_code
        if is_clean_close(code, self._intentional_close):
            self._sm.transition(ConnectionEvent.CLEAN_CLOSE)
            logger.info(f"Room connection closed (code {code})")
        else:
            self._sm.transition(ConnectionEvent.ABNORMAL_CLOSE)
            logger.warning(f"Room connection dropped (code {code})")
        self._set_connected(False, f"code {code}")

        if should_reconnect(self._sm.current_state, self._opened_this_attempt, self._stopped):
            self._sm.transition(ConnectionEvent.SCHEDULE_RECONNECT)
            logger.info(f"Reconnecting in {self._reconnect_delay}s")
            self._reconnect_handle = self._loop.call_later(
                self._reconnect_delay, self._reconnect_due
            )

    def _reconnect_due(self) -> None:
        self._reconnect_handle = None
        if self._stopped or self._sm.current_state != ConnectionState.RECONNECT_PENDING:
            return
        self._sm.transition(ConnectionEvent.RECONNECT_DUE)
        self._start_attempt()

    def _cancel_presence(self) -> None:
        if self._presence_handle is not None:
            self._presence_handle.cancel()
            self._presence_handle = None

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _cancel_retries(self) -> None:
        for handle in self._retry_handles.values():
            handle.cancel()
        self._retry_handles.clear()

    async def _close_current(self, reason: str, farewell: Optional[RoomEvent] = None) -> None:
        state = self._sm.current_state
        task = self._task

        if state == ConnectionState.OPEN and self._conn is not None:
            conn = self._conn
            if farewell is not None:
                self.send(farewell)
            await self._drain()
            self._intentional_close = True
            try:
                await conn.close(1000, reason)
            except Exception as e:
                logger.warning(f"Error while closing room connection: {e}")
        elif state == ConnectionState.CONNECTING:
            if task is not None:
                task.cancel()
            self._sm.transition(ConnectionEvent.STOP)
        elif state in (ConnectionState.CLOSED_ABNORMAL, ConnectionState.RECONNECT_PENDING):
            self._sm.transition(ConnectionEvent.STOP)

        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)
        # Peer may have dropped the socket while the farewell was draining
        if self._stopped and self._sm.current_state in (
            ConnectionState.CLOSED_ABNORMAL, ConnectionState.RECONNECT_PENDING
        ):
            self._sm.transition(ConnectionEvent.STOP)
        self._task = None
        self._conn = None
        self._outbox = None
        self._set_connected(False, reason)

    # ── Public teardown ──────────────────────────────────────

    async def disconnect(self, reason: str = "client disconnect",
                         farewell: Optional[RoomEvent] = None) -> None:
        """
        Close the connection for good.

        Stops reconnection, cancels pending timers and send retries,
        writes ``farewell`` if the socket is open, then closes with 1000.
        Safe to call when never connected.
        """
        self._stopped = True
        self._cancel_reconnect()
        self._cancel_presence()
        self._cancel_retries()
        logger.info(f"Disconnecting: {reason}")
        await self._close_current(reason, farewell)

    async def reconnect(self) -> None:
        """Manually re-open the connection for the current (room, slot)."""
        if self._room_id is None or self._slot is None:
            logger.warning("Reconnect requested before any connect, ignoring")
            return
        self._stopped = False
        self._cancel_reconnect()
        if self._sm.is_active:
            await self._close_current("manual reconnect")
        self.connect(self._room_id, self._slot)
