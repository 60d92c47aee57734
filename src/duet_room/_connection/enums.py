# Area: Connection
"""
duet_room._connection.enums — Connection State Machine Enums
============================================================

Defines the states and events of the realtime room connection.
"""

from enum import Enum


class ConnectionState(Enum):
    """
    States of one room connection.

    State transitions:
    IDLE -> CONNECTING (on CONNECT)
    CONNECTING -> OPEN (on OPENED)
    CONNECTING -> CLOSED_ABNORMAL (on OPEN_FAILED)
    OPEN -> CLOSED_CLEAN (on CLEAN_CLOSE)
    OPEN -> CLOSED_ABNORMAL (on ABNORMAL_CLOSE)
    CLOSED_ABNORMAL -> RECONNECT_PENDING (on SCHEDULE_RECONNECT)
    RECONNECT_PENDING -> CONNECTING (on RECONNECT_DUE)
    CLOSED_CLEAN / CLOSED_ABNORMAL / RECONNECT_PENDING -> CONNECTING (on CONNECT)
    CONNECTING / CLOSED_ABNORMAL / RECONNECT_PENDING -> CLOSED_CLEAN (on STOP)
    """
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSED_CLEAN = "CLOSED_CLEAN"
    CLOSED_ABNORMAL = "CLOSED_ABNORMAL"
    RECONNECT_PENDING = "RECONNECT_PENDING"


class ConnectionEvent(Enum):
    """
    Events that drive the connection state machine.

    Events are triggered by:
    - CONNECT: connect() or a manual reconnect()
    - OPENED: the transport handshake completed
    - OPEN_FAILED: the handshake failed or timed out
    - CLEAN_CLOSE: we closed, or the peer closed with code 1000/1001
    - ABNORMAL_CLOSE: any other close of an open socket
    - SCHEDULE_RECONNECT: a reconnect timer was armed
    - RECONNECT_DUE: the reconnect timer fired
    - STOP: disconnect() while not open
    """
    CONNECT = "CONNECT"
    OPENED = "OPENED"
    OPEN_FAILED = "OPEN_FAILED"
    CLEAN_CLOSE = "CLEAN_CLOSE"
    ABNORMAL_CLOSE = "ABNORMAL_CLOSE"
    SCHEDULE_RECONNECT = "SCHEDULE_RECONNECT"
    RECONNECT_DUE = "RECONNECT_DUE"
    STOP = "STOP"
