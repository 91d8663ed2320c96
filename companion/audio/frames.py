"""
Audio frame primitives.

Pure data containers only.
No queues, no timing logic, no IO.
"""

from __future__ import annotations
from dataclasses import dataclass

from constants import AUDIO_CHANNELS, AUDIO_SAMPLE_WIDTH_BYTES


class AudioFormatError(Exception):
    """Base class for audio format and wire encoding errors."""


class InvalidPacketLength(AudioFormatError):
    """
    Raised when a PCM payload is not a whole number of sample frames.

    A truncated or padded payload cannot be deinterleaved safely and must
    be dropped by the caller.
    """


@dataclass(frozen=True)
class AudioPacket:
    """
    One contiguous chunk of linear PCM16 little-endian audio.

    pcm_bytes:
        Raw interleaved samples. Length is always a multiple of
        sample width x channels.

    sample_rate_hz:
        16 kHz for uplink packets, 24 kHz for downlink packets.

    channels:
        Interleaved channel count (mono in practice).
    """
    pcm_bytes: bytes
    sample_rate_hz: int
    channels: int = AUDIO_CHANNELS

    def __post_init__(self) -> None:
        if self.sample_rate_hz <= 0:
            raise ValueError("sample_rate_hz must be > 0")
        if self.channels <= 0:
            raise ValueError("channels must be > 0")

        frame_bytes = AUDIO_SAMPLE_WIDTH_BYTES * self.channels
        if len(self.pcm_bytes) % frame_bytes != 0:
            raise InvalidPacketLength(
                f"PCM length {len(self.pcm_bytes)} is not a multiple of {frame_bytes}"
            )

    @property
    def sample_count(self) -> int:
        """Samples per channel."""
        return len(self.pcm_bytes) // (AUDIO_SAMPLE_WIDTH_BYTES * self.channels)

    @property
    def duration_s(self) -> float:
        return self.sample_count / self.sample_rate_hz


@dataclass(frozen=True)
class EncodedFrame:
    """
    Wire representation of an AudioPacket.

    data:
        Base64 text of the PCM bytes.

    media_type:
        e.g. "audio/pcm;rate=16000".
    """
    data: str
    media_type: str
