"""
Call status enumerations.

ConnectionStatus is the only state with explicit transitions (see
session.lifecycle). Activity is a display label derived from whether
playback is in flight; it has no functional effect.
"""
from enum import Enum


class ConnectionStatus(str, Enum):
    """
    Lifecycle of one voice call.

    CLOSED and ERROR are terminal.
    """
    IDLE = "IDLE"              # Constructed, not started
    CONNECTING = "CONNECTING"  # Acquiring mic / opening remote session
    OPEN = "OPEN"              # Remote acknowledged; frames are forwarded
    CLOSED = "CLOSED"          # Ended by hang-up or remote close
    ERROR = "ERROR"            # Ended by acquisition or transport failure


class Activity(str, Enum):
    """Status label while OPEN."""
    LISTENING = "LISTENING"
    SPEAKING = "SPEAKING"
