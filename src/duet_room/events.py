"""
duet_room.events — Room event model
====================================

Closed set of events exchanged over the room connection. Every event is
attributable to exactly one slot and is validated once, at the
deserialization boundary, before it can reach the state reducer.

Wire shape (UTF-8 JSON, one object per frame):

    {"type": "category_fixed", "slot": "a", "category": "animal", "roomId": "ABCD1234"}

``roomId`` is stamped on send and echoed back by the gateway; it is optional
on every variant.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .errors import InvalidEventError

Slot = Literal["a", "b"]
SLOTS = ("a", "b")

# Wire tags
CATEGORY_FIXED = "category_fixed"
CATEGORY_COMPLETED = "category_completed"
CATEGORY_UNCOMPLETED = "category_uncompleted"
PROGRESS_UPDATED = "progress_updated"
READY = "is_ready"
CHAT_MESSAGE = "say"
PING = "ping"
LEAVE = "leave"
PRESENCE_ANNOUNCE = "get_in"

EVENT_TYPES = frozenset({
    CATEGORY_FIXED,
    CATEGORY_COMPLETED,
    CATEGORY_UNCOMPLETED,
    PROGRESS_UPDATED,
    READY,
    CHAT_MESSAGE,
    PING,
    LEAVE,
    PRESENCE_ANNOUNCE,
})


def other_slot(slot: str) -> Slot:
    """Return the complementary slot."""
    if slot == "a":
        return "b"
    if slot == "b":
        return "a"
    raise ValueError(f"Unknown slot: {slot!r}")


class _RoomEventBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    slot: Slot
    room_id: Optional[str] = Field(default=None, alias="roomId")


class CategoryFixed(_RoomEventBase):
    """A participant picked the category they are working on."""
    type: Literal["category_fixed"] = CATEGORY_FIXED
    category: Annotated[str, Field(strict=True, min_length=1)]


class CategoryCompleted(_RoomEventBase):
    """A participant finished uploading images for a category."""
    type: Literal["category_completed"] = CATEGORY_COMPLETED
    category: Annotated[str, Field(strict=True, min_length=1)]


class CategoryUncompleted(_RoomEventBase):
    """A participant removed a category from their completed set."""
    type: Literal["category_uncompleted"] = CATEGORY_UNCOMPLETED
    category: Annotated[str, Field(strict=True, min_length=1)]


class ProgressUpdated(_RoomEventBase):
    """Upload progress for the fixed category, 0-100."""
    type: Literal["progress_updated"] = PROGRESS_UPDATED
    progress: Annotated[int, Field(strict=True, ge=0, le=100)]


class Ready(_RoomEventBase):
    type: Literal["is_ready"] = READY


class ChatMessage(_RoomEventBase):
    type: Literal["say"] = CHAT_MESSAGE
    message: Annotated[str, Field(strict=True)]


class Ping(_RoomEventBase):
    type: Literal["ping"] = PING


class Leave(_RoomEventBase):
    type: Literal["leave"] = LEAVE


class PresenceAnnounce(_RoomEventBase):
    type: Literal["get_in"] = PRESENCE_ANNOUNCE


RoomEvent = Annotated[
    Union[
        CategoryFixed,
        CategoryCompleted,
        CategoryUncompleted,
        ProgressUpdated,
        Ready,
        ChatMessage,
        Ping,
        Leave,
        PresenceAnnounce,
    ],
    Field(discriminator="type"),
]

_EVENT_ADAPTER: TypeAdapter = TypeAdapter(RoomEvent)


def _format_validation_errors(exc: ValidationError) -> List[str]:
    errors = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        message = err.get("msg", "invalid value")
        errors.append(f"{location}: {message}" if location else message)
    return errors


def decode_event(raw: Union[str, bytes, Dict[str, Any]]) -> RoomEvent:
    """
    Parse and validate one inbound frame.

    Args:
        raw: JSON text, UTF-8 bytes, or an already-parsed dict

    Returns:
        The typed event

    Raises:
        InvalidEventError: If the frame is not JSON or not a known event shape
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidEventError(raw, [f"Invalid JSON: {e}"]) from e
    else:
        data = raw

    if not isinstance(data, dict):
        raise InvalidEventError(raw, [f"Expected a JSON object, got {type(data).__name__}"])

    try:
        return _EVENT_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise InvalidEventError(raw, _format_validation_errors(e)) from e


def event_to_dict(event: RoomEvent) -> Dict[str, Any]:
    """Return the wire dict for an event (``roomId`` alias, no null fields)."""
    return event.model_dump(by_alias=True, exclude_none=True)


def encode_event(event: RoomEvent) -> str:
    """Serialize an event to compact JSON text."""
    return json.dumps(event_to_dict(event), ensure_ascii=False, separators=(",", ":"))


def with_room(event: RoomEvent, room_id: str) -> RoomEvent:
    """Return a copy of the event stamped with the room identifier."""
    if event.room_id == room_id:
        return event
    return event.model_copy(update={"room_id": room_id})
