# Area: Connection
"""
duet_room._connection.state_machine — Connection State Machine
==============================================================

Tracks the lifecycle of the room connection and decides whether a
dropped connection is retried.
"""

from .enums import ConnectionEvent, ConnectionState

# Close codes that count as a deliberate shutdown
CLEAN_CLOSE_CODES = frozenset({1000, 1001})

# Valid state transitions: {current_state: {event: next_state}}
TRANSITIONS = {
    ConnectionState.IDLE: {
        ConnectionEvent.CONNECT: ConnectionState.CONNECTING,
    },
    ConnectionState.CONNECTING: {
        ConnectionEvent.OPENED: ConnectionState.OPEN,
        ConnectionEvent.OPEN_FAILED: ConnectionState.CLOSED_ABNORMAL,
        ConnectionEvent.STOP: ConnectionState.CLOSED_CLEAN,
    },
    ConnectionState.OPEN: {
        ConnectionEvent.CLEAN_CLOSE: ConnectionState.CLOSED_CLEAN,
        ConnectionEvent.ABNORMAL_CLOSE: ConnectionState.CLOSED_ABNORMAL,
    },
    ConnectionState.CLOSED_CLEAN: {
        ConnectionEvent.CONNECT: ConnectionState.CONNECTING,
    },
    ConnectionState.CLOSED_ABNORMAL: {
        ConnectionEvent.SCHEDULE_RECONNECT: ConnectionState.RECONNECT_PENDING,
        ConnectionEvent.CONNECT: ConnectionState.CONNECTING,
        ConnectionEvent.STOP: ConnectionState.CLOSED_CLEAN,
    },
    ConnectionState.RECONNECT_PENDING: {
        ConnectionEvent.RECONNECT_DUE: ConnectionState.CONNECTING,
        ConnectionEvent.CONNECT: ConnectionState.CONNECTING,
        ConnectionEvent.STOP: ConnectionState.CLOSED_CLEAN,
    },
}

ACTIVE_STATES = frozenset({ConnectionState.CONNECTING, ConnectionState.OPEN})


def is_clean_close(code, intentional: bool) -> bool:
    """A close is clean when we asked for it or the peer used 1000/1001."""
    return intentional or code in CLEAN_CLOSE_CODES


def should_reconnect(state: ConnectionState, opened_this_attempt: bool, stopped: bool) -> bool:
    """
    Decide whether to arm the reconnect timer.

    Only an abnormal close of a connection that actually opened is
    retried, and never after the manager was stopped.
    """
    return (
        state == ConnectionState.CLOSED_ABNORMAL
        and opened_this_attempt
        and not stopped
    )


class ConnectionStateMachine:
    """
    State machine for the room connection lifecycle.

    Attributes:
        current_state: The current state of the connection
    """

    def __init__(self):
        """Initialize state machine in IDLE."""
        self.current_state = ConnectionState.IDLE

    @property
    def is_active(self) -> bool:
        """True while connecting or open."""
        return self.current_state in ACTIVE_STATES

    def can_transition(self, event: ConnectionEvent) -> bool:
        """
        Check if a transition is valid from current state.

        Args:
            event: The event to check

        Returns:
            True if the transition is valid, False otherwise
        """
        valid_transitions = TRANSITIONS.get(self.current_state, {})
        return event in valid_transitions

    def transition(self, event: ConnectionEvent) -> ConnectionState:
        """
        Execute a state transition.

        Args:
            event: The event triggering the transition

        Returns:
            The new state after transition

        Raises:
            ValueError: If the transition is not valid
        """
        if not self.can_transition(event):
            raise ValueError(
                f"Invalid transition: {event.value} from {self.current_state.value}"
            )

        next_state = TRANSITIONS[self.current_state][event]
        self.current_state = next_state
        return next_state
