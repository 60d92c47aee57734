# Area: Connection
"""
duet_room._connection.transport — Realtime transport
====================================================

Narrow interface between the ConnectionManager and the socket library.
The default implementation wraps ``websockets.asyncio.client``; tests
substitute an in-memory fake with the same shape.
"""

from __future__ import annotations
import logging
from typing import AsyncIterator, Optional, Protocol, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

logger = logging.getLogger("duet_room.connection.transport")

Frame = Union[str, bytes]

_SCHEME_MAP = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


def build_room_url(gateway_url: str, room_id: str, slot: str) -> str:
    """
    Build the gateway URL for one (room, slot) pair.

    ``http(s)`` gateways map to ``ws(s)``; a bare host gets ``wss://``.
    Existing query parameters are kept.
    """
    url = gateway_url.strip()
    if "://" not in url:
        url = f"wss://{url}"
    parts = urlsplit(url)
    scheme = _SCHEME_MAP.get(parts.scheme.lower())
    if scheme is None:
        raise ValueError(f"Unsupported gateway scheme: {parts.scheme!r}")

    query = [(k, v) for k, v in parse_qsl(parts.query) if k not in ("roomId", "slot")]
    query += [("roomId", room_id), ("slot", slot)]
    return urlunsplit((scheme, parts.netloc, parts.path, urlencode(query), ""))


class RoomConnection(Protocol):
    """One open socket to the room gateway."""

    @property
    def close_code(self) -> Optional[int]:
        ...

    async def send(self, text: str) -> None:
        ...

    def messages(self) -> AsyncIterator[Frame]:
        ...

    async def close(self, code: int = 1000, reason: str = "") -> None:
        ...


class Transport(Protocol):
    """Opens room connections."""

    async def open(self, url: str) -> RoomConnection:
        ...


class WebsocketsConnection:
    """RoomConnection backed by a websockets ClientConnection."""

    def __init__(self, ws: ClientConnection):
        self._ws = ws

    @property
    def close_code(self) -> Optional[int]:
        return self._ws.close_code

    async def send(self, text: str) -> None:
        await self._ws.send(text)

    async def messages(self) -> AsyncIterator[Frame]:
        """Yield frames until the socket closes, cleanly or not."""
        try:
            async for frame in self._ws:
                yield frame
        except ConnectionClosed as e:
            logger.debug(f"Socket closed while reading: {e}")

    async def close(self, code: int = 1000, reason: str = "") -> None:
        await self._ws.close(code=code, reason=reason)


class WebsocketsTransport:
    """Default transport built on ``websockets.asyncio.client.connect``."""

    def __init__(self, open_timeout: float = 10.0):
        self.open_timeout = open_timeout

    async def open(self, url: str) -> WebsocketsConnection:
        ws = await connect(url, open_timeout=self.open_timeout)
        return WebsocketsConnection(ws)
