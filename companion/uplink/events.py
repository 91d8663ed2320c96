"""
Inbound event definitions for the uplink channel.

Rules:
- Events describe facts that have occurred on the voice session.
- Events carry data only (no behavior).
- Consumers dispatch on the concrete type; every type below must be
  handled or explicitly ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from audio.frames import EncodedFrame


class UplinkEventType(str, Enum):
    """Discriminant for logging and dispatch."""

    OPENED = "OPENED"
    AUDIO_CHUNK = "AUDIO_CHUNK"
    TURN_COMPLETE = "TURN_COMPLETE"
    INTERRUPTED = "INTERRUPTED"
    CLOSED = "CLOSED"
    ERROR = "ERROR"


@dataclass(frozen=True)
class UplinkEvent:
    """
    Base event type.

    ts_ms is a wall-clock timestamp for logging only.
    """

    event_type: UplinkEventType
    ts_ms: int


@dataclass(frozen=True)
class Opened(UplinkEvent):
    """Remote endpoint acknowledged the session setup."""


@dataclass(frozen=True)
class AudioChunk(UplinkEvent):
    """One synthesized-audio frame from the model."""
    frame: EncodedFrame


@dataclass(frozen=True)
class TurnComplete(UplinkEvent):
    """The model finished its turn."""


@dataclass(frozen=True)
class Interrupted(UplinkEvent):
    """The model stopped speaking because the user talked over it."""


@dataclass(frozen=True)
class Closed(UplinkEvent):
    """Remote endpoint ended the session."""
    reason: str | None = None


@dataclass(frozen=True)
class UplinkError(UplinkEvent):
    """Transport failure; terminal for the call."""
    reason: str
