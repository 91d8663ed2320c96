"""
Text-safe wire codec for PCM audio.

An AudioPacket travels as an EncodedFrame: standard base64 text plus a
media type of the form "audio/pcm;rate=<hz>".

Usage example:

    frame = encode_packet(AudioPacket(pcm_bytes=pcm, sample_rate_hz=16_000))
    payload = {"data": frame.data, "mimeType": frame.media_type}

    packet = decode_frame(frame, default_rate_hz=DOWNLINK_SAMPLE_RATE_HZ)

Guarantee: decode_bytes(encode_bytes(b)) == b for every byte string,
including b"" and bytes(range(256)).
"""

from __future__ import annotations

import base64
import binascii

from audio.frames import AudioFormatError, AudioPacket, EncodedFrame
from constants import (
    AUDIO_CHANNELS,
    PCM_MEDIA_TYPE_BASE,
    PCM_MEDIA_TYPE_RATE_PARAM,
)


# -------------------------
# Exceptions
# -------------------------

class FrameDecodeError(AudioFormatError):
    """
    Raised when an EncodedFrame's text is not valid base64.

    The frame cannot be recovered and must be skipped.
    """


class UnsupportedMediaType(AudioFormatError):
    """Raised when a media type is not linear PCM or carries a bad rate."""


# -------------------------
# Byte <-> text
# -------------------------

def encode_bytes(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_bytes(text: str) -> bytes:
    """Strict base64 decode; raises FrameDecodeError on malformed input."""
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError, AttributeError) as e:
        raise FrameDecodeError(f"invalid base64 payload: {e}") from e


# -------------------------
# Media types
# -------------------------

def pcm_media_type(sample_rate_hz: int) -> str:
    return f"{PCM_MEDIA_TYPE_BASE};{PCM_MEDIA_TYPE_RATE_PARAM}={sample_rate_hz}"


def parse_pcm_media_type(media_type: str, *, default_rate_hz: int | None = None) -> int:
    """
    Return the sample rate declared by a PCM media type.

    "audio/pcm;rate=24000" -> 24000
    "audio/pcm"            -> default_rate_hz (if given)
    """
    parts = [p.strip() for p in media_type.split(";")]
    if not parts or parts[0].lower() != PCM_MEDIA_TYPE_BASE:
        raise UnsupportedMediaType(f"not a PCM media type: {media_type!r}")

    for param in parts[1:]:
        key, _, value = param.partition("=")
        if key.strip().lower() != PCM_MEDIA_TYPE_RATE_PARAM:
            continue
        try:
            rate = int(value.strip())
        except ValueError as e:
            raise UnsupportedMediaType(f"bad rate in {media_type!r}") from e
        if rate <= 0:
            raise UnsupportedMediaType(f"bad rate in {media_type!r}")
        return rate

    if default_rate_hz is None:
        raise UnsupportedMediaType(f"missing rate in {media_type!r}")
    return default_rate_hz


# -------------------------
# Packet <-> frame
# -------------------------

def encode_packet(packet: AudioPacket) -> EncodedFrame:
    return EncodedFrame(
        data=encode_bytes(packet.pcm_bytes),
        media_type=pcm_media_type(packet.sample_rate_hz),
    )


def decode_frame(
    frame: EncodedFrame,
    *,
    default_rate_hz: int | None = None,
    channels: int = AUDIO_CHANNELS,
) -> AudioPacket:
    """
    Decode an EncodedFrame back into an AudioPacket.

    Raises:
        UnsupportedMediaType, FrameDecodeError, InvalidPacketLength
    """
    rate = parse_pcm_media_type(frame.media_type, default_rate_hz=default_rate_hz)
    pcm = decode_bytes(frame.data)
    return AudioPacket(pcm_bytes=pcm, sample_rate_hz=rate, channels=channels)
