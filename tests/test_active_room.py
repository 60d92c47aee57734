# Area: Session Tests
"""Tests for session storage and the stored identity."""

import json
from datetime import datetime, timedelta, timezone

from duet_room.session import (
    ACTIVE_ROOM_KEY,
    ActiveRoom,
    ActiveRoomStore,
    JsonFileStorage,
    MemoryStorage,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def alice(created_at=NOW):
    return ActiveRoom(
        room_id="ABCD1234", slot="a", role="girlfriend",
        name="Alice", emoji="🟢", created_at=created_at,
    )


class TestMemoryStorage:
    """Tests for process-local storage."""

    def test_get_set_remove(self):
        storage = MemoryStorage()
        storage.set("k", "v")
        assert storage.get("k") == "v"
        storage.remove("k")
        assert storage.get("k") is None

    def test_listeners_see_changes(self):
        storage = MemoryStorage()
        changes = []
        storage.add_listener(lambda *change: changes.append(change))
        storage.set("k", "v1")
        storage.set("k", "v1")
        storage.set("k", "v2")
        storage.remove("k")
        assert changes == [("k", None, "v1"), ("k", "v1", "v2"), ("k", "v2", None)]

    def test_remove_listener(self):
        storage = MemoryStorage()
        changes = []
        remove = storage.add_listener(lambda *change: changes.append(change))
        remove()
        storage.set("k", "v")
        assert changes == []


class TestJsonFileStorage:
    """Tests for file-backed storage."""

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "storage.json"
        JsonFileStorage(path).set("k", "v")
        assert JsonFileStorage(path).get("k") == "v"
        assert json.loads(path.read_text(encoding="utf-8")) == {"k": "v"}

    def test_unreadable_file_is_empty(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text("{oops", encoding="utf-8")
        assert JsonFileStorage(path).get("k") is None

    def test_refresh_reports_external_edits(self, tmp_path):
        """Test that another process clearing a key notifies listeners."""
        path = tmp_path / "storage.json"
        storage = JsonFileStorage(path)
        storage.set("k", "v")
        changes = []
        storage.add_listener(lambda *change: changes.append(change))

        path.write_text(json.dumps({"other": "x"}), encoding="utf-8")
        storage.refresh()

        assert ("k", "v", None) in changes
        assert ("other", None, "x") in changes
        assert storage.get("k") is None


class TestActiveRoomStore:
    """Tests for loading and saving the identity."""

    def test_round_trip(self):
        store = ActiveRoomStore(MemoryStorage(), clock=lambda: NOW)
        store.save(alice())
        assert store.load() == alice()

    def test_expired_identity_is_cleared(self):
        """Test that an identity older than the retention window is dropped."""
        storage = MemoryStorage()
        store = ActiveRoomStore(storage, clock=lambda: NOW)
        store.save(alice(created_at=NOW - timedelta(hours=2, minutes=31)))
        assert store.load() is None
        assert storage.get(ACTIVE_ROOM_KEY) is None

    def test_identity_within_window_kept(self):
        store = ActiveRoomStore(MemoryStorage(), clock=lambda: NOW)
        store.save(alice(created_at=NOW - timedelta(hours=2)))
        assert store.load() is not None

    def test_malformed_identity_is_cleared(self):
        storage = MemoryStorage({ACTIVE_ROOM_KEY: '{"room_id": "ABCD1234"}'})
        store = ActiveRoomStore(storage, clock=lambda: NOW)
        assert store.load() is None
        assert storage.get(ACTIVE_ROOM_KEY) is None

    def test_stored_as_json_with_iso_timestamp(self):
        storage = MemoryStorage()
        ActiveRoomStore(storage).save(alice())
        data = json.loads(storage.get(ACTIVE_ROOM_KEY))
        assert data["room_id"] == "ABCD1234"
        assert data["slot"] == "a"
        assert data["created_at"].startswith("2026-03-01T12:00:00")

    def test_on_change(self):
        storage = MemoryStorage()
        store = ActiveRoomStore(storage)
        seen = []
        store.on_change(seen.append)
        storage.set("unrelated", "x")
        store.save(alice())
        store.clear()
        assert seen == [alice(), None]
