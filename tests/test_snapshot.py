# Area: Store Tests
"""Tests for durable room snapshot parsing."""

import json
import logging
from datetime import datetime, timedelta, timezone

import pytest

from duet_room._store.slot_pair import SlotPair
from duet_room._store.snapshot import (
    RETENTION_WINDOW,
    RoomSnapshot,
    parse_chat_log,
    parse_timestamp,
)

from conftest import make_room_record


class TestSlotPair:
    """Tests for the two-slot record."""

    def test_for_slot(self):
        pair = SlotPair(a=1, b=2)
        assert pair.for_slot("a") == 1
        assert pair.for_slot("b") == 2

    def test_items_in_slot_order(self):
        assert list(SlotPair(a=1, b=2).items()) == [("a", 1), ("b", 2)]

    def test_unknown_slot_raises(self):
        with pytest.raises(ValueError):
            SlotPair(a=1, b=2).for_slot("c")


class TestRoomSnapshotParsing:
    """Tests for RoomSnapshot.from_record."""

    def test_profiles_from_record(self, snapshot):
        """Test that both slot profiles are populated."""
        assert snapshot.room_id == "ABCD1234"
        assert snapshot.slots.a.name == "Alice"
        assert snapshot.slots.a.emoji == "🟢"
        assert snapshot.slots.b.name == "Bob"
        assert snapshot.slots.b.role == "boyfriend"
        assert snapshot.both_occupied()

    def test_missing_room_id_raises(self):
        with pytest.raises(ValueError):
            RoomSnapshot.from_record({"a_name": "Alice"})

    def test_empty_slot_is_unoccupied(self):
        """Test that a slot without a name counts as empty."""
        snap = RoomSnapshot.from_record(make_room_record(b_name="", b_emoji=""))
        assert snap.slots.a.is_occupied
        assert not snap.slots.b.is_occupied
        assert not snap.both_occupied()

    def test_realtime_mirror_fields(self):
        """Test fixed category, completed list, progress and presence."""
        snap = RoomSnapshot.from_record(make_room_record(
            a_fixed_category="animal",
            a_completed_categories='["food", "drink", "food"]',
            a_progress=55,
            b_online=True,
        ))
        assert snap.slots.a.fixed_category == "animal"
        assert snap.slots.a.completed_categories == ["food", "drink"]
        assert snap.slots.a.progress == 55
        assert snap.slots.b.online is True
        assert snap.slots.b.fixed_category is None

    def test_completed_categories_as_list(self):
        snap = RoomSnapshot.from_record(make_room_record(b_completed_categories=["place"]))
        assert snap.slots.b.completed_categories == ["place"]

    def test_progress_clamped_with_warning(self, caplog):
        """Test that out-of-range progress is clamped."""
        with caplog.at_level(logging.WARNING, logger="duet_room"):
            snap = RoomSnapshot.from_record(make_room_record(a_progress=140))
        assert snap.slots.a.progress == 100
        assert "clamping" in caplog.text

    def test_category_images(self):
        """Test that {category}_{slot} keys become image lists."""
        snap = RoomSnapshot.from_record(make_room_record(
            animal_a="https://img/1.jpg",
            food_b='["https://img/2.jpg", "https://img/3.jpg"]',
            unknown_a="ignored",
        ))
        assert snap.slots.a.images == {"animal": ["https://img/1.jpg"]}
        assert snap.slots.b.images["food"] == ["https://img/2.jpg", "https://img/3.jpg"]

    def test_chat_log_parsed(self):
        log = json.dumps([
            {"slot": "a", "message": "hi", "timestamp": 1},
            {"slot": "b", "message": "hey", "timestamp": 2},
        ])
        snap = RoomSnapshot.from_record(make_room_record(chat_messages=log))
        assert [m.message for m in snap.chat_messages] == ["hi", "hey"]


class TestChatLog:
    """Tests for tolerant chat log parsing."""

    def test_malformed_log_is_empty(self, caplog):
        """Test that unreadable JSON does not fail the snapshot."""
        with caplog.at_level(logging.WARNING, logger="duet_room"):
            assert parse_chat_log("{broken") == ()
        assert "unreadable chat log" in caplog.text

    def test_wrong_shape_is_empty(self):
        assert parse_chat_log('{"slot": "a"}') == ()

    def test_bad_entries_skipped(self):
        """Test that invalid entries are dropped, valid ones kept."""
        entries = parse_chat_log([
            {"slot": "a", "message": "ok", "timestamp": 5},
            {"slot": "z", "message": "bad slot", "timestamp": 6},
            {"message": "no slot"},
        ])
        assert len(entries) == 1
        assert entries[0].message == "ok"

    def test_missing_log(self):
        assert parse_chat_log(None) == ()


class TestExpiry:
    """Tests for the retention window."""

    def test_retention_is_two_and_a_half_hours(self):
        assert RETENTION_WINDOW == timedelta(hours=2, minutes=30)

    def test_expired_after_window(self):
        created = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        snap = RoomSnapshot.from_record(make_room_record(created_at=created.isoformat()))
        assert not snap.is_expired(created + timedelta(hours=2))
        assert snap.is_expired(created + timedelta(hours=2, minutes=31))

    def test_no_created_at_never_expires(self):
        snap = RoomSnapshot.from_record(make_room_record(created_at=None))
        assert snap.expires_at is None
        assert not snap.is_expired()

    def test_parse_timestamp_z_suffix(self):
        """Test that a trailing Z parses as UTC."""
        parsed = parse_timestamp("2026-01-01T10:00:00Z")
        assert parsed == datetime(2026, 1, 1, 10, 0, tzinfo=timezone.utc)

    def test_parse_timestamp_naive_is_utc(self):
        parsed = parse_timestamp("2026-01-01T10:00:00")
        assert parsed.tzinfo == timezone.utc
