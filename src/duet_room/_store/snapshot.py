# Area: Store
"""
duet_room._store.snapshot — Durable room snapshot
=================================================

Parses the flat durable room record (one row per room, as kept by the
room table) into a typed snapshot with an explicit two-slot profile.

Record layout:
    room_id, created_at
    {slot}_name, {slot}_emoji, {slot}_role, {slot}_ready
    {category}_{slot}                  image reference(s)
    {slot}_fixed_category, {slot}_completed_categories,
    {slot}_progress, {slot}_online     realtime mirror
    chat_messages                      JSON array of {slot, message, timestamp}

This module is the only place where record keys are built from a slot.
"""

from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..events import SLOTS, Slot
from .slot_pair import SlotPair

logger = logging.getLogger("duet_room.store.snapshot")

# Rooms expire this long after creation
RETENTION_WINDOW = timedelta(hours=2.5)

CATEGORIES = (
    "animal",
    "place",
    "plant",
    "character",
    "season",
    "hobby",
    "food",
    "colour",
    "drink",
)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _load_json_list(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            return json.loads(text)
        return [text]
    return value


class ChatEntry(BaseModel):
    """One chat log line. ``timestamp`` is milliseconds since the epoch."""
    model_config = ConfigDict(frozen=True)

    slot: Slot
    message: str
    timestamp: int


class SlotProfile(BaseModel):
    """Everything the durable record knows about one participant slot."""
    model_config = ConfigDict(frozen=True)

    name: str = ""
    emoji: str = ""
    role: str = ""
    ready: bool = False
    images: Dict[str, List[str]] = Field(default_factory=dict)
    fixed_category: Optional[str] = None
    completed_categories: List[str] = Field(default_factory=list)
    progress: int = 0
    online: bool = False

    @field_validator("completed_categories", mode="before")
    @classmethod
    def _parse_completed(cls, value: Any) -> Any:
        value = _load_json_list(value)
        if isinstance(value, list):
            seen: List[str] = []
            for item in value:
                if item not in seen:
                    seen.append(item)
            return seen
        return value

    @field_validator("fixed_category", mode="before")
    @classmethod
    def _blank_is_none(cls, value: Any) -> Any:
        return value or None

    @field_validator("progress")
    @classmethod
    def _clamp_progress(cls, value: int) -> int:
        if value < 0 or value > 100:
            logger.warning(f"Snapshot progress {value} out of range, clamping")
            return max(0, min(100, value))
        return value

    @property
    def is_occupied(self) -> bool:
        return bool(self.name.strip())


def _profile_from_record(record: Mapping[str, Any], slot: str) -> SlotProfile:
    images = {}
    for category in CATEGORIES:
        value = record.get(f"{category}_{slot}")
        if value:
            images[category] = _load_json_list(value)

    raw = {
        "name": record.get(f"{slot}_name") or "",
        "emoji": record.get(f"{slot}_emoji") or "",
        "role": record.get(f"{slot}_role") or "",
        "ready": record.get(f"{slot}_ready") or False,
        "images": images,
        "fixed_category": record.get(f"{slot}_fixed_category"),
        "completed_categories": record.get(f"{slot}_completed_categories") or [],
        "progress": record.get(f"{slot}_progress") or 0,
        "online": record.get(f"{slot}_online") or False,
    }
    return SlotProfile.model_validate(raw)


def parse_chat_log(value: Any) -> Tuple[ChatEntry, ...]:
    """
    Deserialize the mirrored chat log.

    A log that is not a JSON array is treated as empty; entries that do not
    validate are skipped. Neither case fails the snapshot.
    """
    if not value:
        return ()
    try:
        entries = json.loads(value) if isinstance(value, str) else value
    except (json.JSONDecodeError, ValueError) as e:
        logger.warning(f"Ignoring unreadable chat log: {e}")
        return ()
    if not isinstance(entries, list):
        logger.warning(f"Ignoring chat log of type {type(entries).__name__}")
        return ()

    parsed = []
    for entry in entries:
        try:
            parsed.append(ChatEntry.model_validate(entry))
        except ValidationError:
            logger.debug(f"Skipping malformed chat entry: {entry!r}")
    return tuple(parsed)


@dataclass(frozen=True)
class RoomSnapshot:
    """Typed view of a durable room record."""
    room_id: str
    slots: SlotPair[SlotProfile]
    created_at: Optional[datetime] = None
    chat_messages: Tuple[ChatEntry, ...] = field(default_factory=tuple)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "RoomSnapshot":
        """
        Build a snapshot from a flat durable record.

        Raises:
            ValueError: If the record has no room_id or a field has the wrong type
        """
        room_id = record.get("room_id")
        if not room_id:
            raise ValueError("Room record is missing room_id")

        profiles = {slot: _profile_from_record(record, slot) for slot in SLOTS}
        return cls(
            room_id=str(room_id),
            slots=SlotPair(a=profiles["a"], b=profiles["b"]),
            created_at=parse_timestamp(record.get("created_at")),
            chat_messages=parse_chat_log(record.get("chat_messages")),
        )

    @property
    def expires_at(self) -> Optional[datetime]:
        if self.created_at is None:
            return None
        return self.created_at + RETENTION_WINDOW

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True once the retention window since creation has passed."""
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now > self.expires_at

    def both_occupied(self) -> bool:
        return all(profile.is_occupied for _, profile in self.slots.items())

    def profile(self, slot: str) -> SlotProfile:
        return self.slots.for_slot(slot)
