# Area: Test Fixtures
"""Shared fixtures: in-memory transport and room records."""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from duet_room._store.snapshot import RoomSnapshot

_CLOSED = object()


class FakeConnection:
    """In-memory RoomConnection. Frames are pushed with deliver()."""

    def __init__(self, url: str):
        self.url = url
        self.sent: List[str] = []
        self.close_code: Optional[int] = None
        self.close_reason: Optional[str] = None
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, text: str) -> None:
        if self.close_code is not None:
            raise ConnectionError("socket is closed")
        self.sent.append(text)

    async def messages(self):
        while True:
            item = await self._inbox.get()
            if item is _CLOSED:
                return
            yield item

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.close_code is None:
            self.close_code = code
            self.close_reason = reason
            self._inbox.put_nowait(_CLOSED)

    def deliver(self, frame: Any) -> None:
        """Queue an inbound frame; dicts are JSON-encoded."""
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self._inbox.put_nowait(frame)

    def drop(self, code: int = 1006) -> None:
        """Simulate the peer or network closing the socket."""
        self.close_code = code
        self._inbox.put_nowait(_CLOSED)

    def sent_events(self) -> List[Dict[str, Any]]:
        return [json.loads(text) for text in self.sent]

    def sent_types(self) -> List[str]:
        return [event["type"] for event in self.sent_events()]


class FakeTransport:
    """Transport handing out FakeConnections; set fail_next to refuse opens."""

    def __init__(self):
        self.urls: List[str] = []
        self.connections: List[FakeConnection] = []
        self.fail_next = 0
        self.open_delay = 0.0

    async def open(self, url: str) -> FakeConnection:
        self.urls.append(url)
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        if self.fail_next:
            self.fail_next -= 1
            raise ConnectionRefusedError("gateway refused the connection")
        conn = FakeConnection(url)
        self.connections.append(conn)
        return conn

    @property
    def latest(self) -> FakeConnection:
        return self.connections[-1]


def make_room_record(room_id: str = "ABCD1234", **overrides: Any) -> Dict[str, Any]:
    """Durable record for a room with Alice in slot a and Bob in slot b."""
    record = {
        "room_id": room_id,
        "created_at": datetime.now(timezone.utc).isoformat(),
        "a_name": "Alice",
        "a_emoji": "🟢",
        "a_role": "girlfriend",
        "b_name": "Bob",
        "b_emoji": "🔵",
        "b_role": "boyfriend",
    }
    record.update(overrides)
    return record


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def room_record():
    return make_room_record()


@pytest.fixture
def snapshot(room_record):
    return RoomSnapshot.from_record(room_record)
