# Area: CLI Tests
"""Tests for the terminal client."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from duet_room import cli
from duet_room._store.snapshot import RoomSnapshot
from duet_room.room_session import RoomSession
from duet_room.session import ActiveRoomStore, MemoryStorage

from conftest import make_room_record


def offline_session():
    session = RoomSession("ABCD1234", "a")
    session.store.initialize_from_room_data(RoomSnapshot.from_record(make_room_record()), "a")
    return session


def run_command(session, line):
    return asyncio.run(cli.handle_command(session, line))


class TestParseArgs:
    """Tests for argument parsing."""

    def test_room_required(self):
        with pytest.raises(SystemExit):
            cli.parse_args([])

    def test_join_requires_slot(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["--room", "ABCD1234", "--join", "Alice"])

    def test_full(self):
        args = cli.parse_args([
            "--room", "ABCD1234", "--join", "Alice", "--slot", "a",
            "--snapshot-dir", "rooms", "--storage", "s.json", "--events",
        ])
        assert args.room == "ABCD1234"
        assert args.slot == "a"
        assert args.snapshot_dir == "rooms"
        assert args.events


class TestHandleCommand:
    """Tests for command dispatch against a session."""

    def test_local_actions(self):
        session = offline_session()
        assert run_command(session, "/fix animal")
        assert run_command(session, "/progress 30")
        state = session.state
        assert state.my_fixed_category == "animal"
        assert state.my_progress == 30

        run_command(session, "/done animal")
        assert session.state.my_completed_categories == ["animal"]
        run_command(session, "/undo animal")
        assert session.state.my_completed_categories == []

        run_command(session, "/ready")
        assert session.state.my_ready

    def test_chat_toggle(self):
        session = offline_session()
        run_command(session, "/chat")
        assert session.state.chat_open
        run_command(session, "/chat")
        assert not session.state.chat_open

    def test_plain_text_is_chat(self):
        session = MagicMock()
        run_command(session, "hello there")
        session.say.assert_called_once_with("hello there")

    def test_bad_progress_reported(self, capsys):
        session = offline_session()
        assert run_command(session, "/progress lots")
        assert "Error" in capsys.readouterr().err

    def test_unknown_command(self, capsys):
        assert run_command(offline_session(), "/dance")
        assert "Unknown command" in capsys.readouterr().err

    def test_state_printed(self, capsys):
        run_command(offline_session(), "/state")
        output = capsys.readouterr().out
        assert "Alice" in output
        assert "Bob" in output

    def test_leave_exits(self):
        session = MagicMock()
        session.leave_room = AsyncMock()
        assert run_command(session, "/leave") is False
        session.leave_room.assert_awaited_once()

    def test_reconnect(self):
        session = MagicMock()
        session.reconnect = AsyncMock()
        run_command(session, "/reconnect")
        session.reconnect.assert_awaited_once()


class TestMain:
    """Tests for main() and bootstrap handling."""

    def test_missing_gateway_fails(self, monkeypatch, capsys):
        monkeypatch.delenv("ROOM_WS_GATEWAY_URL", raising=False)
        with patch.object(cli, "load_config", return_value={"reconnect_delay_seconds": 3.0}):
            assert cli.main(["--room", "ABCD1234"]) == 1
        assert "ws_gateway_url" in capsys.readouterr().err

    def test_denied_room_exits_with_reason(self, tmp_path, capsys):
        config = {
            "ws_gateway_url": "wss://gw",
            "reconnect_delay_seconds": 3.0,
            "presence_settle_seconds": 0.1,
            "send_retry_seconds": 0.5,
            "open_timeout_seconds": 10.0,
            "storage_refresh_seconds": 1.0,
            "storage_path": str(tmp_path / "storage.json"),
            "snapshot_dir": str(tmp_path),
        }
        args = cli.parse_args(["--room", "ABCD1234"])
        assert asyncio.run(cli.run_client(args, config)) == 1
        assert "Room not found or has expired" in capsys.readouterr().err

    def test_join_with_corrupt_room_record(self, tmp_path, capsys):
        """Test that an unreadable room record is reported, not raised."""
        (tmp_path / "ABCD1234.json").write_text("{not json", encoding="utf-8")
        config = {
            "ws_gateway_url": "wss://gw",
            "storage_path": str(tmp_path / "storage.json"),
            "snapshot_dir": str(tmp_path),
        }
        args = cli.parse_args(["--room", "ABCD1234", "--join", "Alice", "--slot", "a"])
        assert asyncio.run(cli.run_client(args, config)) == 1
        assert "Error: Failed to load room data" in capsys.readouterr().err
        assert not (tmp_path / "storage.json").exists()

    def test_join_stores_identity(self, tmp_path):
        (tmp_path / "ABCD1234.json").write_text(json.dumps(make_room_record()), encoding="utf-8")
        identities = ActiveRoomStore(MemoryStorage())
        snapshot = RoomSnapshot.from_record(make_room_record())
        identity = cli.store_identity("ABCD1234", "Bob", "b", snapshot, identities)
        assert identity.role == "boyfriend"
        assert identity.emoji == "🔵"
        assert identities.load() == identity
