# Area: Session
"""
duet_room.session — Session bootstrap and collaborators
=======================================================

Gates entry to a room. Before any connection is opened the bootstrap:

1. Loads the durable room snapshot
2. Checks that both partners have joined
3. Checks the locally stored identity against the snapshot

Also provides the narrow collaborator seams the room layer depends on:
snapshot sources (where room records come from) and session storage
(where the local identity is kept, under the ``activeRoom`` key).
"""

from __future__ import annotations
import inspect
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    Union,
)

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import AccessDeniedError, AccessDeniedReason
from .events import Slot
from ._store.snapshot import RETENTION_WINDOW, RoomSnapshot, parse_timestamp

if TYPE_CHECKING:
    from ._connection.manager import ConnectionManager
    from .room_session import RoomSession

logger = logging.getLogger("duet_room.session")

ACTIVE_ROOM_KEY = "activeRoom"

# Poll interval for storage that other processes can edit
STORAGE_REFRESH_SECONDS = 1.0

StorageListener = Callable[[str, Optional[str], Optional[str]], None]
RoomRecord = Mapping[str, Any]


# ══════════════════════════════════════════════════════════════
# SNAPSHOT SOURCES
# ══════════════════════════════════════════════════════════════


class SnapshotSource(Protocol):
    """Where durable room records come from. May be sync or async."""

    def get_room_snapshot(
        self, room_id: str
    ) -> Union[Optional[RoomRecord], Awaitable[Optional[RoomRecord]]]:
        ...


class InMemorySnapshotSource:
    """Room records held in a dict, keyed by room id."""

    def __init__(self, records: Optional[Dict[str, RoomRecord]] = None):
        self._records: Dict[str, RoomRecord] = dict(records or {})

    def put(self, record: RoomRecord) -> None:
        self._records[record["room_id"]] = dict(record)

    def get_room_snapshot(self, room_id: str) -> Optional[RoomRecord]:
        record = self._records.get(room_id)
        return dict(record) if record is not None else None


class JsonFileSnapshotSource:
    """Room records stored one per file as ``<directory>/<room_id>.json``."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def get_room_snapshot(self, room_id: str) -> Optional[RoomRecord]:
        path = self.directory / f"{room_id}.json"
        if not path.is_file():
            return None
        with open(path, encoding="utf-8") as f:
            return json.load(f)


# ══════════════════════════════════════════════════════════════
# SESSION STORAGE
# ══════════════════════════════════════════════════════════════


class SessionStorage(Protocol):
    """String key-value storage that reports changes."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def add_listener(self, listener: StorageListener) -> Callable[[], None]:
        ...


class _NotifyingStorage:
    """Listener bookkeeping shared by the storage implementations."""

    def __init__(self):
        self._listeners = []

    def add_listener(self, listener: StorageListener) -> Callable[[], None]:
        """Register ``listener(key, old, new)``; returns an unsubscribe function."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self, key: str, old: Optional[str], new: Optional[str]) -> None:
        if old == new:
            return
        for listener in list(self._listeners):
            try:
                listener(key, old, new)
            except Exception as e:
                logger.error(f"Storage listener failed for {key}: {e}", exc_info=True)


class MemoryStorage(_NotifyingStorage):
    """Process-local storage."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        super().__init__()
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        old = self._data.get(key)
        self._data[key] = value
        self._notify(key, old, value)

    def remove(self, key: str) -> None:
        old = self._data.pop(key, None)
        self._notify(key, old, None)


class JsonFileStorage(_NotifyingStorage):
    """
    Storage persisted as a flat JSON object in one file.

    Writes replace the file atomically. Other processes may edit the
    file; call ``refresh()`` to pick up their changes and notify listeners.
    """

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)
        self._data: Dict[str, str] = self._read()

    def _read(self) -> Dict[str, str]:
        if not self.path.is_file():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring storage file {self.path}: not a JSON object")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        old = self._data.get(key)
        self._data[key] = value
        self._write()
        self._notify(key, old, value)

    def remove(self, key: str) -> None:
        if key not in self._data:
            return
        old = self._data.pop(key)
        self._write()
        self._notify(key, old, None)

    def refresh(self) -> None:
        """Re-read the file and notify about keys changed by someone else."""
        before = self._data
        self._data = self._read()
        for key in set(before) | set(self._data):
            self._notify(key, before.get(key), self._data.get(key))


# ══════════════════════════════════════════════════════════════
# LOCAL IDENTITY
# ══════════════════════════════════════════════════════════════


class ActiveRoom(BaseModel):
    """The room this client joined, and as whom."""
    model_config = ConfigDict(frozen=True)

    room_id: str
    slot: Slot
    role: str = ""
    name: str
    emoji: str = ""
    created_at: datetime

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_created_at(cls, value: Any) -> Any:
        return parse_timestamp(value)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now - self.created_at > RETENTION_WINDOW


def _parse_active_room(raw: Optional[str]) -> Optional[ActiveRoom]:
    if raw is None:
        return None
    try:
        return ActiveRoom.model_validate_json(raw)
    except ValidationError as e:
        logger.warning(f"Stored identity is malformed: {e.error_count()} error(s)")
        return None


class ActiveRoomStore:
    """Reads and writes the local identity in session storage."""

    def __init__(self, storage: SessionStorage,
                 clock: Optional[Callable[[], datetime]] = None):
        self.storage = storage
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def load(self) -> Optional[ActiveRoom]:
        """Return the stored identity; malformed or expired ones are removed."""
        raw = self.storage.get(ACTIVE_ROOM_KEY)
        if raw is None:
            return None
        identity = _parse_active_room(raw)
        if identity is None:
            self.storage.remove(ACTIVE_ROOM_KEY)
            return None
        if identity.is_expired(self._clock()):
            logger.info(f"Stored identity for room {identity.room_id} has expired")
            self.storage.remove(ACTIVE_ROOM_KEY)
            return None
        return identity

    def save(self, identity: ActiveRoom) -> None:
        self.storage.set(ACTIVE_ROOM_KEY, identity.model_dump_json())

    def clear(self) -> None:
        self.storage.remove(ACTIVE_ROOM_KEY)

    def on_change(
        self, callback: Callable[[Optional[ActiveRoom]], None]
    ) -> Callable[[], None]:
        """Call ``callback(identity_or_None)`` whenever the stored identity changes."""

        def listener(key: str, old: Optional[str], new: Optional[str]) -> None:
            if key == ACTIVE_ROOM_KEY:
                callback(_parse_active_room(new))

        return self.storage.add_listener(listener)


# ══════════════════════════════════════════════════════════════
# BOOTSTRAP
# ══════════════════════════════════════════════════════════════


@dataclass
class BootstrapOutcome:
    """Result of validating entry to one room."""
    room_id: str
    snapshot: Optional[RoomSnapshot] = None
    identity: Optional[ActiveRoom] = None
    reason: Optional[AccessDeniedReason] = None

    @property
    def granted(self) -> bool:
        return self.reason is None

    def raise_for_denial(self) -> None:
        """
        Raises:
            AccessDeniedError: If entry was denied
        """
        if self.reason is not None:
            raise AccessDeniedError(self.room_id, self.reason)


class SessionBootstrap:
    """
    Validates that this client may enter a room.

    Usage:
        bootstrap = SessionBootstrap(source, ActiveRoomStore(storage))
        outcome, session = await bootstrap.enter_room("ABCD1234")
        if outcome.granted:
            session.start()
    """

    def __init__(
        self,
        source: SnapshotSource,
        identities: ActiveRoomStore,
        clock: Optional[Callable[[], datetime]] = None,
        storage_refresh: float = STORAGE_REFRESH_SECONDS,
    ):
        self.source = source
        self.identities = identities
        self.storage_refresh = storage_refresh
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def _fetch(self, room_id: str) -> Optional[RoomRecord]:
        result = self.source.get_room_snapshot(room_id)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _deny(self, outcome: BootstrapOutcome, reason: AccessDeniedReason) -> BootstrapOutcome:
        outcome.reason = reason
        logger.warning(
            f"Access to room {outcome.room_id} denied: {reason.value}",
            extra={"room_id": outcome.room_id},
        )
        return outcome

    async def load_and_validate(self, room_id: str) -> BootstrapOutcome:
        """
        Load the room and check the local identity against it.

        Denial reasons are checked in order: room not found or expired,
        partner missing, not joined, wrong room, name mismatch. Any
        failure while loading or parsing the record is LOAD_FAILED.
        """
        outcome = BootstrapOutcome(room_id=room_id)

        try:
            record = await self._fetch(room_id)
            snapshot = RoomSnapshot.from_record(record) if record else None
        except Exception as e:
            logger.error(f"Failed to load room {room_id}: {e}", exc_info=True)
            return self._deny(outcome, AccessDeniedReason.LOAD_FAILED)

        if snapshot is None or snapshot.is_expired(self._clock()):
            return self._deny(outcome, AccessDeniedReason.ROOM_NOT_FOUND)
        outcome.snapshot = snapshot

        if not snapshot.both_occupied():
            return self._deny(outcome, AccessDeniedReason.PARTNER_MISSING)

        identity = self.identities.load()
        if identity is None:
            return self._deny(outcome, AccessDeniedReason.NOT_JOINED)
        outcome.identity = identity

        if identity.room_id != room_id:
            return self._deny(outcome, AccessDeniedReason.WRONG_ROOM)

        if snapshot.profile(identity.slot).name != identity.name:
            return self._deny(outcome, AccessDeniedReason.INVALID_CREDENTIALS)

        logger.info(
            f"Access to room {room_id} granted for {identity.name} (slot {identity.slot})",
            extra={"room_id": room_id, "slot": identity.slot},
        )
        return outcome

    async def enter_room(
        self,
        room_id: str,
        connection: Optional["ConnectionManager"] = None,
    ) -> Tuple[BootstrapOutcome, Optional["RoomSession"]]:
        """
        Validate entry and, when granted, build a seeded RoomSession.

        The session is not started; nothing is connected here.
        """
        # Import here to avoid circular imports
        from .room_session import RoomSession

        outcome = await self.load_and_validate(room_id)
        if not outcome.granted:
            return outcome, None

        session = RoomSession(
            room_id=room_id,
            my_slot=outcome.identity.slot,
            connection=connection,
            identities=self.identities,
            storage_refresh=self.storage_refresh,
        )
        session.store.initialize_from_room_data(outcome.snapshot, outcome.identity.slot)
        return outcome, session
