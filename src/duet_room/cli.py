# Area: Shared
"""
duet_room.cli — Command-line interface
======================================

Terminal client for one participant in one room.

Usage:
    python -m duet_room --room ABCD1234                      # Enter a joined room
    python -m duet_room --room ABCD1234 --join Alice --slot a
    python -m duet_room --room ABCD1234 --config room.json --events

Commands once connected:
    /fix CAT       select the category you are working on
    /progress N    report upload progress (0-100)
    /done CAT      mark a category complete
    /undo CAT      remove a category from your completed set
    /ready         mark yourself ready
    /ping          nudge your partner
    /chat          toggle the chat view (marks messages read)
    /reconnect     re-open the connection
    /state         print the current room state
    /leave         leave the room and exit
    anything else  is sent as a chat message
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ._connection.manager import ConnectionManager
from ._shared.logging_config import enable_event_mode, setup_logging
from ._store.snapshot import RoomSnapshot
from ._store.state import GameState
from .config import load_config, validate_config
from .errors import AccessDeniedReason
from .room_session import RoomSession
from .session import (
    ActiveRoom,
    ActiveRoomStore,
    JsonFileSnapshotSource,
    JsonFileStorage,
    SessionBootstrap,
)

logger = logging.getLogger("duet_room.cli")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Duet room - realtime client for a two-player room",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m duet_room --room ABCD1234
  python -m duet_room --room ABCD1234 --join Alice --slot a
  ROOM_WS_GATEWAY_URL=wss://gateway.example python -m duet_room --room ABCD1234
        """,
    )

    parser.add_argument("--room", required=True, help="Room identifier")
    parser.add_argument("--config", type=str, help="Path to JSON config file")
    parser.add_argument("--join", metavar="NAME", help="Store an identity for this room before entering")
    parser.add_argument("--slot", choices=("a", "b"), help="Slot to join as (with --join)")
    parser.add_argument("--snapshot-dir", type=str, help="Directory of <room_id>.json room records")
    parser.add_argument("--storage", type=str, help="Path to the local session storage file")
    parser.add_argument(
        "--events",
        action="store_true",
        help="Show one line per room event instead of standard logs",
    )

    args = parser.parse_args(argv)
    if args.join and not args.slot:
        parser.error("--join requires --slot")
    return args


def format_state(state: GameState) -> str:
    """Render the state as a short multi-line summary."""
    lines = []
    for label, slot in (("You", state.my_slot), ("Partner", state.partner_slot)):
        side = state.sides.for_slot(slot)
        done = ", ".join(side.completed_categories) or "-"
        lines.append(
            f"{label:8} {side.emoji} {side.name} [{slot}] "
            f"working on: {side.fixed_category or '-'} ({side.progress}%) "
            f"done: {done} ready: {'yes' if side.ready else 'no'}"
        )
    lines.append(
        f"Partner online: {'yes' if state.partner_online else 'no'} | "
        f"Connected: {'yes' if state.connected else 'no'} | "
        f"Unread: {state.unread_count}"
    )
    return "\n".join(lines)


def store_identity(room_id: str, name: str, slot: str, snapshot: Optional[RoomSnapshot],
                   identities: ActiveRoomStore) -> ActiveRoom:
    """Save the identity used by the bootstrap, filling role and emoji from the room."""
    profile = snapshot.profile(slot) if snapshot else None
    identity = ActiveRoom(
        room_id=room_id,
        slot=slot,
        role=profile.role if profile else "",
        name=name,
        emoji=profile.emoji if profile else "",
        created_at=datetime.now(timezone.utc),
    )
    identities.save(identity)
    return identity


def _print_new_chat(session: RoomSession):
    seen = len(session.state.chat_messages)

    def listener(state: GameState) -> None:
        nonlocal seen
        for line in state.chat_messages[seen:]:
            who = "you" if line.slot == state.my_slot else state.partner.name or "partner"
            print(f"[{who}] {line.message}")
        seen = len(state.chat_messages)

    return listener


async def handle_command(session: RoomSession, line: str) -> bool:
    """
    Run one input line against the session.

    Returns False when the client should exit.
    """
    text = line.strip()
    if not text:
        return True
    if not text.startswith("/"):
        session.say(text)
        return True

    command, _, arg = text.partition(" ")
    arg = arg.strip()

    try:
        if command == "/fix" and arg:
            session.fix_category(arg)
        elif command == "/progress" and arg:
            session.update_progress(int(arg))
        elif command == "/done" and arg:
            session.complete_category(arg)
        elif command == "/undo" and arg:
            session.uncomplete_category(arg)
        elif command == "/ready":
            session.mark_ready()
        elif command == "/ping":
            session.ping()
        elif command == "/chat":
            if session.state.chat_open:
                session.close_chat()
            else:
                session.open_chat()
        elif command == "/reconnect":
            await session.reconnect()
        elif command == "/state":
            print(format_state(session.state))
        elif command == "/leave":
            await session.leave_room(on_left=lambda: print("You left the room."))
            return False
        else:
            print(f"Unknown command: {text}", file=sys.stderr)
    except (ValueError, ValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
    return True


async def _command_loop(session: RoomSession) -> None:
    loop = asyncio.get_running_loop()
    while not session.closed:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if line == "":
            await session.close("input closed")
            return
        if not await handle_command(session, line):
            return


async def run_client(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Bootstrap the room and run the interactive loop."""
    storage = JsonFileStorage(args.storage or config["storage_path"])
    identities = ActiveRoomStore(storage)
    source = JsonFileSnapshotSource(args.snapshot_dir or config["snapshot_dir"])

    if args.join:
        try:
            record = source.get_room_snapshot(args.room)
            snapshot = RoomSnapshot.from_record(record) if record else None
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read room {args.room} before joining: {e}")
            print(f"Error: {AccessDeniedReason.LOAD_FAILED.value}", file=sys.stderr)
            return 1
        store_identity(args.room, args.join, args.slot, snapshot, identities)

    bootstrap = SessionBootstrap(
        source, identities, storage_refresh=config["storage_refresh_seconds"]
    )
    connection = ConnectionManager.from_config(config)
    outcome, session = await bootstrap.enter_room(args.room, connection=connection)
    if not outcome.granted:
        print(f"Error: {outcome.reason.value}", file=sys.stderr)
        return 1

    session.subscribe(_print_new_chat(session), selector=lambda s: len(s.chat_messages))
    session.subscribe(
        lambda s: print(f"Partner is {'online' if s.partner_online else 'offline'}"),
        selector=lambda s: s.partner_online,
    )
    print(format_state(session.state))
    session.start()
    await _command_loop(session)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = parse_args(argv)
    try:
        config = load_config(args.config)
        validate_config(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Set via config file or environment variables.", file=sys.stderr)
        return 1

    setup_logging(config["log_file"], config["log_level"])
    if args.events:
        enable_event_mode()

    try:
        return asyncio.run(run_client(args, config))
    except KeyboardInterrupt:
        return 130
