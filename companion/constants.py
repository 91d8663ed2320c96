"""
CONSTANTS
---------
Single source of truth for all behavioral constants in the client.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# PCM sample format (shared by uplink and downlink)
# =============================================================================

AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit, little-endian)
AUDIO_CHANNELS: Final[int] = 1

PCM16_SCALE: Final[float] = 32768.0
PCM16_MIN: Final[int] = -32768
PCM16_MAX: Final[int] = 32767

# =============================================================================
# Uplink (microphone -> remote model)
# =============================================================================

UPLINK_SAMPLE_RATE_HZ: Final[int] = 16_000

# Host audio delivers capture blocks of this many samples
CAPTURE_BLOCK_SAMPLES: Final[int] = 4096

# Outgoing frames buffered by the uplink before new ones are dropped
UPLINK_QUEUE_MAX_FRAMES: Final[int] = 256

# =============================================================================
# Downlink (remote model -> speaker)
# =============================================================================

DOWNLINK_SAMPLE_RATE_HZ: Final[int] = 24_000

# Output stream block size for the playback context
PLAYBACK_BLOCK_SAMPLES: Final[int] = 1024

# =============================================================================
# Media types
# =============================================================================

PCM_MEDIA_TYPE_BASE: Final[str] = "audio/pcm"
PCM_MEDIA_TYPE_RATE_PARAM: Final[str] = "rate"

UPLINK_MEDIA_TYPE: Final[str] = f"{PCM_MEDIA_TYPE_BASE};rate={UPLINK_SAMPLE_RATE_HZ}"
DOWNLINK_MEDIA_TYPE: Final[str] = f"{PCM_MEDIA_TYPE_BASE};rate={DOWNLINK_SAMPLE_RATE_HZ}"

# =============================================================================
# Live voice endpoint
# =============================================================================

LIVE_API_URL: Final[str] = (
    "wss://generativelanguage.googleapis.com/ws/"
    "google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"
)
LIVE_MODEL_DEFAULT: Final[str] = "gemini-2.5-flash-native-audio-preview-09-2025"
LIVE_VOICE_DEFAULT: Final[str] = "Zephyr"

# websockets max inbound message size (None = unlimited)
LIVE_WS_MAX_MESSAGE_BYTES: Final[int | None] = None

# =============================================================================
# Chat collaborator
# =============================================================================

CHAT_BASE_URL_DEFAULT: Final[str] = "https://generativelanguage.googleapis.com/v1beta/openai/"
CHAT_MODEL_DEFAULT: Final[str] = "gemini-3-flash-preview"
CHAT_TEMPERATURE: Final[float] = 0.7
CHAT_TOP_P: Final[float] = 0.8

CHAT_EMPTY_RESPONSE_FALLBACK: Final[str] = (
    "I'm sorry, I'm having trouble connecting right now."
)
CHAT_ERROR_FALLBACK: Final[str] = (
    "I'm having a technical issue. I'm still here for you, "
    "but my response might be limited."
)

# =============================================================================
# Status text surfaced to the UI shell
# =============================================================================

STATUS_TEXT_IDLE: Final[str] = "Ready"
STATUS_TEXT_CONNECTING: Final[str] = "Connecting..."
STATUS_TEXT_LISTENING: Final[str] = "Listening"
STATUS_TEXT_SPEAKING: Final[str] = "Speaking"
STATUS_TEXT_CLOSED: Final[str] = "Call ended"
STATUS_TEXT_MIC_UNAVAILABLE: Final[str] = "Microphone unavailable"
STATUS_TEXT_SPEAKER_UNAVAILABLE: Final[str] = "Audio output unavailable"
STATUS_TEXT_CONNECT_FAILED: Final[str] = "Could not connect"
STATUS_TEXT_CONNECTION_LOST: Final[str] = "Connection lost"
