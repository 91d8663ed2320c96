"""
JSON message framing for the bidirectional live voice endpoint.

Client -> server:
    {"setup": {...}}                                   once, first message
    {"realtimeInput": {"audio": {"data": b64, "mimeType": "audio/pcm;rate=16000"}}}

Server -> client (any combination of keys per message):
    {"setupComplete": {}}                              -> Opened
    {"serverContent": {"modelTurn": {"parts": [{"inlineData": {...}}]}}}
                                                       -> AudioChunk per part
    {"serverContent": {"interrupted": true}}           -> Interrupted
    {"serverContent": {"turnComplete": true}}          -> TurnComplete
    {"goAway": {...}}                                  -> Closed

Unknown keys are ignored. Text parts are ignored (audio-only session).
"""

from __future__ import annotations

import json
import time
from typing import Any

from audio.frames import EncodedFrame
from constants import DOWNLINK_MEDIA_TYPE, PCM_MEDIA_TYPE_BASE
from uplink.events import (
    AudioChunk,
    Closed,
    Interrupted,
    Opened,
    TurnComplete,
    UplinkEvent,
    UplinkEventType,
)


class ProtocolError(Exception):
    """Raised when a server message is not a JSON object."""


def _now_ms() -> int:
    return int(time.time() * 1000)


# -------------------------
# Client -> server
# -------------------------

def build_setup_message(
    *,
    model: str,
    voice: str,
    system_instruction: str | None = None,
) -> dict[str, Any]:
    model_name = model if model.startswith("models/") else f"models/{model}"
    setup: dict[str, Any] = {
        "model": model_name,
        "generationConfig": {
            "responseModalities": ["AUDIO"],
            "speechConfig": {
                "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice}},
            },
        },
    }
    if system_instruction:
        setup["systemInstruction"] = {"parts": [{"text": system_instruction}]}
    return {"setup": setup}


def build_audio_message(frame: EncodedFrame) -> dict[str, Any]:
    return {
        "realtimeInput": {
            "audio": {"data": frame.data, "mimeType": frame.media_type},
        },
    }


def dumps(message: dict[str, Any]) -> str:
    return json.dumps(message, separators=(",", ":"))


# -------------------------
# Server -> client
# -------------------------

def parse_server_message(raw: str | bytes) -> tuple[UplinkEvent, ...]:
    """
    Translate one server message into zero or more events, in order:
    Opened, AudioChunk..., Interrupted, TurnComplete, Closed.

    Raises:
        ProtocolError if the payload is not a JSON object.
    """
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ProtocolError(f"expected JSON object, got {type(data).__name__}")

    ts_ms = _now_ms()
    events: list[UplinkEvent] = []

    if "setupComplete" in data:
        events.append(Opened(event_type=UplinkEventType.OPENED, ts_ms=ts_ms))

    content = data.get("serverContent")
    if isinstance(content, dict):
        for frame in _audio_frames(content):
            events.append(
                AudioChunk(event_type=UplinkEventType.AUDIO_CHUNK, ts_ms=ts_ms, frame=frame)
            )
        if content.get("interrupted"):
            events.append(Interrupted(event_type=UplinkEventType.INTERRUPTED, ts_ms=ts_ms))
        if content.get("turnComplete"):
            events.append(TurnComplete(event_type=UplinkEventType.TURN_COMPLETE, ts_ms=ts_ms))

    go_away = data.get("goAway")
    if go_away is not None:
        time_left = go_away.get("timeLeft") if isinstance(go_away, dict) else None
        events.append(
            Closed(
                event_type=UplinkEventType.CLOSED,
                ts_ms=ts_ms,
                reason=f"go_away (time_left={time_left})",
            )
        )

    return tuple(events)


def _audio_frames(content: dict[str, Any]) -> list[EncodedFrame]:
    turn = content.get("modelTurn")
    if not isinstance(turn, dict):
        return []

    frames: list[EncodedFrame] = []
    for part in turn.get("parts") or []:
        if not isinstance(part, dict):
            continue
        inline = part.get("inlineData")
        if not isinstance(inline, dict):
            continue
        mime = inline.get("mimeType") or DOWNLINK_MEDIA_TYPE
        if not str(mime).lower().startswith(PCM_MEDIA_TYPE_BASE):
            continue
        frames.append(EncodedFrame(data=str(inline.get("data", "")), media_type=str(mime)))
    return frames
