# Area: Session Tests
"""Tests for RoomSession actions, leave and the end-to-end room flow."""

import asyncio
from datetime import datetime, timezone

import pytest

from duet_room._connection.enums import ConnectionState
from duet_room._connection.manager import ConnectionManager
from duet_room._store.snapshot import RoomSnapshot
from duet_room.errors import SessionNotReadyError
from duet_room.room_session import RoomSession
from duet_room.session import (
    ActiveRoom,
    ActiveRoomStore,
    InMemorySnapshotSource,
    JsonFileStorage,
    MemoryStorage,
    SessionBootstrap,
)

from conftest import FakeTransport, make_room_record


def make_connection(transport):
    return ConnectionManager(
        "wss://gateway.test",
        transport=transport,
        reconnect_delay=0.05,
        presence_settle=0.01,
        send_retry_delay=0.02,
        drain_timeout=0.2,
    )


def alice_identity():
    return ActiveRoom(
        room_id="ABCD1234", slot="a", role="girlfriend",
        name="Alice", emoji="🟢", created_at=datetime.now(timezone.utc),
    )


def seeded_session(transport, identities=None, slot="a"):
    session = RoomSession(
        "ABCD1234", slot, connection=make_connection(transport), identities=identities,
    )
    session.store.initialize_from_room_data(
        RoomSnapshot.from_record(make_room_record()), slot
    )
    return session


class TestEndToEnd:
    """Bootstrap, connect, receive and act in one room."""

    def test_room_flow(self):
        transport = FakeTransport()
        source = InMemorySnapshotSource()
        source.put(make_room_record())
        identities = ActiveRoomStore(MemoryStorage())
        identities.save(alice_identity())
        bootstrap = SessionBootstrap(source, identities)

        async def scenario():
            outcome, session = await bootstrap.enter_room(
                "ABCD1234", connection=make_connection(transport)
            )
            assert outcome.granted
            assert session.state.my_slot == "a"
            assert session.state.partner_slot == "b"

            session.start()
            await asyncio.sleep(0.05)
            conn = transport.latest
            assert conn.sent_events()[0] == {"type": "get_in", "slot": "a", "roomId": "ABCD1234"}
            assert session.state.connected

            conn.deliver({"type": "category_fixed", "slot": "b", "category": "animal"})
            await asyncio.sleep(0.01)
            assert session.state.partner_fixed_category == "animal"

            session.complete_category("animal")
            await asyncio.sleep(0.01)
            assert session.state.my_completed_categories == ["animal"]
            assert conn.sent_events()[-1] == {
                "type": "category_completed", "slot": "a",
                "category": "animal", "roomId": "ABCD1234",
            }
            await session.close()

        asyncio.run(scenario())


class TestLocalActions:
    """Tests for store updates paired with outbound events."""

    def test_actions_update_store_and_send(self):
        transport = FakeTransport()
        session = seeded_session(transport)

        async def scenario():
            session.start()
            await asyncio.sleep(0.03)
            session.fix_category("place")
            session.update_progress(40)
            session.mark_ready()
            session.ping()
            await asyncio.sleep(0.01)
            state = session.state
            assert state.my_fixed_category == "place"
            assert state.my_progress == 40
            assert state.my_ready
            assert transport.latest.sent_types() == [
                "get_in", "category_fixed", "progress_updated", "is_ready", "ping",
            ]
            await session.close()

        asyncio.run(scenario())

    def test_say_waits_for_echo(self):
        """Test that chat is only appended when the gateway echoes it."""
        transport = FakeTransport()
        session = seeded_session(transport)

        async def scenario():
            session.start()
            await asyncio.sleep(0.03)
            assert session.say("hello") is True
            await asyncio.sleep(0.01)
            assert session.state.chat_messages == []
            transport.latest.deliver({"type": "say", "slot": "a", "message": "hello"})
            await asyncio.sleep(0.01)
            assert [m.message for m in session.state.chat_messages] == ["hello"]
            assert session.state.unread_count == 0
            await session.close()

        asyncio.run(scenario())

    def test_blank_chat_not_sent(self):
        session = seeded_session(FakeTransport())
        assert session.say("   ") is False

    def test_invalid_progress_raises_before_send(self):
        transport = FakeTransport()
        session = seeded_session(transport)
        with pytest.raises(ValueError):
            session.update_progress(150)
        assert session.state.my_progress == 0

    def test_chat_view(self):
        session = seeded_session(FakeTransport())
        session.store.add_chat_message("b", "hi")
        assert session.state.unread_count == 1
        session.open_chat()
        assert session.state.unread_count == 0
        session.close_chat()
        assert not session.state.chat_open


class TestLifecycle:
    """Tests for start, leave and close."""

    def test_start_requires_seeded_store(self):
        session = RoomSession("ABCD1234", "a", connection=make_connection(FakeTransport()))
        with pytest.raises(SessionNotReadyError):
            session.start()

    def test_start_requires_connection(self):
        session = RoomSession("ABCD1234", "a")
        session.store.initialize_from_room_data(
            RoomSnapshot.from_record(make_room_record()), "a"
        )
        with pytest.raises(SessionNotReadyError):
            session.start()

    def test_leave_room(self):
        """Test that leaving announces, closes cleanly and never reconnects."""
        transport = FakeTransport()
        identities = ActiveRoomStore(MemoryStorage())
        identities.save(alice_identity())
        session = seeded_session(transport, identities)
        left = []

        async def scenario():
            session.start()
            await asyncio.sleep(0.03)
            conn = transport.latest
            await session.leave_room(on_left=lambda: left.append(True))
            assert conn.sent_types()[-1] == "leave"
            assert conn.close_code == 1000
            await asyncio.sleep(0.1)
            assert len(transport.urls) == 1
            assert session.connection.state == ConnectionState.CLOSED_CLEAN

        asyncio.run(scenario())
        assert left == [True]
        assert not session.state.initialized
        assert identities.load() is None

    def test_leave_with_async_callback(self):
        session = seeded_session(FakeTransport())
        left = []

        async def on_left():
            left.append(True)

        asyncio.run(session.leave_room(on_left=on_left))
        assert left == [True]

    def test_leave_when_never_connected(self):
        transport = FakeTransport()
        session = seeded_session(transport)
        asyncio.run(session.leave_room())
        assert transport.urls == []
        assert session.closed

    def test_identity_cleared_elsewhere_closes_session(self):
        """Test that clearing the stored identity tears the session down."""
        transport = FakeTransport()
        identities = ActiveRoomStore(MemoryStorage())
        identities.save(alice_identity())
        session = seeded_session(transport, identities)

        async def scenario():
            session.start()
            await asyncio.sleep(0.03)
            identities.clear()
            await asyncio.sleep(0.05)
            assert session.closed
            assert transport.latest.close_code == 1000
            assert "leave" not in transport.latest.sent_types()

        asyncio.run(scenario())

    def test_identity_cleared_by_other_process(self, tmp_path):
        """Test that an edit to the storage file on disk closes the session."""
        path = tmp_path / "storage.json"
        identities = ActiveRoomStore(JsonFileStorage(path))
        identities.save(alice_identity())
        transport = FakeTransport()
        session = RoomSession(
            "ABCD1234", "a", connection=make_connection(transport),
            identities=identities, storage_refresh=0.02,
        )
        session.store.initialize_from_room_data(
            RoomSnapshot.from_record(make_room_record()), "a"
        )

        async def scenario():
            session.start()
            await asyncio.sleep(0.05)
            assert not session.closed
            path.write_text("{}", encoding="utf-8")
            await asyncio.sleep(0.1)
            assert session.closed
            assert session.connection.state == ConnectionState.CLOSED_CLEAN
            assert "leave" not in transport.latest.sent_types()

        asyncio.run(scenario())

    def test_polling_stops_after_leave(self, tmp_path):
        identities = ActiveRoomStore(JsonFileStorage(tmp_path / "storage.json"))
        identities.save(alice_identity())
        session = seeded_session(FakeTransport(), identities)

        async def scenario():
            session.start()
            await asyncio.sleep(0.02)
            task = session._refresh_task
            assert task is not None
            await session.leave_room()
            await asyncio.sleep(0)
            assert task.cancelled() or task.done()
            assert session._refresh_task is None

        asyncio.run(scenario())

        asyncio.run(scenario())

    def test_partner_presence_tracked(self):
        transport = FakeTransport()
        session = seeded_session(transport)

        async def scenario():
            session.start()
            await asyncio.sleep(0.03)
            transport.latest.deliver({"type": "get_in", "slot": "b"})
            await asyncio.sleep(0.01)
            assert session.state.partner_online
            transport.latest.deliver({"type": "leave", "slot": "b"})
            await asyncio.sleep(0.01)
            assert not session.state.partner_online
            await session.close()

        asyncio.run(scenario())
