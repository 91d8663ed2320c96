"""
Pure call lifecycle transitions.

(status, signal) -> Transition(status, changed)

Rules:
- Pure: no side effects, no IO, no clocks.
- Total: every (status, signal) pair is either listed in the table or
  an explicit no-op.
- CLOSED and ERROR are terminal.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final

from session.connection_status import ConnectionStatus


class LifecycleSignal(str, Enum):
    CALL_STARTED = "CALL_STARTED"
    REMOTE_OPENED = "REMOTE_OPENED"
    HANG_UP = "HANG_UP"
    REMOTE_CLOSED = "REMOTE_CLOSED"
    FAILURE = "FAILURE"


@dataclass(frozen=True)
class Transition:
    status: ConnectionStatus
    changed: bool


_S = ConnectionStatus
_G = LifecycleSignal

TRANSITIONS: Final[dict[tuple[ConnectionStatus, LifecycleSignal], ConnectionStatus]] = {
    (_S.IDLE, _G.CALL_STARTED): _S.CONNECTING,
    (_S.IDLE, _G.HANG_UP): _S.CLOSED,

    (_S.CONNECTING, _G.REMOTE_OPENED): _S.OPEN,
    (_S.CONNECTING, _G.HANG_UP): _S.CLOSED,
    (_S.CONNECTING, _G.REMOTE_CLOSED): _S.CLOSED,
    (_S.CONNECTING, _G.FAILURE): _S.ERROR,

    (_S.OPEN, _G.HANG_UP): _S.CLOSED,
    (_S.OPEN, _G.REMOTE_CLOSED): _S.CLOSED,
    (_S.OPEN, _G.FAILURE): _S.ERROR,
}

TERMINAL: Final[frozenset[ConnectionStatus]] = frozenset({_S.CLOSED, _S.ERROR})


def transition(status: ConnectionStatus, signal: LifecycleSignal) -> Transition:
    """Apply one signal. Unlisted pairs leave the status unchanged."""
    target = TRANSITIONS.get((status, signal))
    if target is None:
        return Transition(status=status, changed=False)
    return Transition(status=target, changed=target is not status)


def is_terminal(status: ConnectionStatus) -> bool:
    return status in TERMINAL
