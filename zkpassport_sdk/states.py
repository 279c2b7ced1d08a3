"""Lifecycle state machine for a single credential request.

::

    CREATED -> AWAITING_HANDSHAKE -> ESTABLISHED -> GENERATING_PROOF -> COMPLETED
                                     ESTABLISHED -> REJECTED
    any non-terminal state -> FAILED
    any state -> CANCELLED

``CREATED`` accepts a handshake directly; it only differs from
``AWAITING_HANDSHAKE`` in whether the relay connection has reported open.
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Dict, FrozenSet, Tuple

from .errors import ZkPassportError


class ProtocolError(ZkPassportError):
    """Raised for malformed envelopes and messages that do not fit the current state."""


class SessionState(Enum):
    CREATED = auto()
    AWAITING_HANDSHAKE = auto()
    ESTABLISHED = auto()
    GENERATING_PROOF = auto()
    COMPLETED = auto()
    REJECTED = auto()
    FAILED = auto()
    CANCELLED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


class SessionEvent(Enum):
    TRANSPORT_OPEN = auto()
    HANDSHAKE = auto()
    ACCEPT = auto()
    REJECT = auto()
    DONE = auto()
    ERROR = auto()
    CANCEL = auto()


TERMINAL_STATES: FrozenSet[SessionState] = frozenset(
    {
        SessionState.COMPLETED,
        SessionState.REJECTED,
        SessionState.FAILED,
        SessionState.CANCELLED,
    }
)

_TRANSITIONS: Dict[Tuple[SessionState, SessionEvent], SessionState] = {
    (SessionState.CREATED, SessionEvent.TRANSPORT_OPEN): SessionState.AWAITING_HANDSHAKE,
    (SessionState.CREATED, SessionEvent.HANDSHAKE): SessionState.ESTABLISHED,
    (SessionState.AWAITING_HANDSHAKE, SessionEvent.HANDSHAKE): SessionState.ESTABLISHED,
    (SessionState.ESTABLISHED, SessionEvent.ACCEPT): SessionState.GENERATING_PROOF,
    (SessionState.ESTABLISHED, SessionEvent.REJECT): SessionState.REJECTED,
    (SessionState.ESTABLISHED, SessionEvent.DONE): SessionState.COMPLETED,
    (SessionState.GENERATING_PROOF, SessionEvent.DONE): SessionState.COMPLETED,
}


def next_state(state: SessionState, event: SessionEvent) -> SessionState:
    """Return the state reached from *state* on *event*.

    Raises :class:`ProtocolError` when the pair is not a legal transition.
    """

    if event is SessionEvent.CANCEL:
        return SessionState.CANCELLED
    if event is SessionEvent.ERROR and not state.is_terminal:
        return SessionState.FAILED
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise ProtocolError(f"{event.name} is not valid in state {state.name}") from None
