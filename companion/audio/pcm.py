"""PCM conversion utilities."""
from __future__ import annotations

from math import gcd

import numpy as np
from scipy import signal

from constants import PCM16_MAX, PCM16_MIN, PCM16_SCALE


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """
    Convert float samples in [-1.0, 1.0] to PCM16 little-endian bytes.

    Each sample becomes round(s * 32768), clamped to the int16 range
    before narrowing so out-of-range input saturates instead of wrapping.
    """
    scaled = np.rint(np.asarray(samples, dtype=np.float64) * PCM16_SCALE)
    clipped = np.clip(scaled, PCM16_MIN, PCM16_MAX)
    return clipped.astype("<i2").tobytes()


def pcm16le_to_float32(pcm_bytes: bytes, channels: int = 1) -> np.ndarray:
    """
    Convert interleaved PCM16 little-endian bytes to float32 samples.

    Returns an array shaped (frames, channels) with values sample / 32768.
    Callers are expected to pass whole sample frames (see AudioPacket).
    """
    if channels <= 0:
        raise ValueError("channels must be > 0")

    audio_i16 = np.frombuffer(pcm_bytes, dtype="<i2")  # little-endian int16
    audio_f32 = audio_i16.astype(np.float32) / PCM16_SCALE
    return audio_f32.reshape(-1, channels)


def to_mono(samples: np.ndarray) -> np.ndarray:
    """Collapse a (frames, channels) block to 1-D mono by averaging."""
    arr = np.asarray(samples, dtype=np.float32)
    if arr.ndim == 1:
        return arr
    if arr.shape[1] == 1:
        return arr[:, 0]
    return arr.mean(axis=1)


def resample(samples: np.ndarray, src_rate_hz: int, dst_rate_hz: int) -> np.ndarray:
    """
    Polyphase resample of a float block along its first (time) axis.

    Accepts (frames,) or (frames, channels). Stateless: each block is
    resampled independently.
    """
    if src_rate_hz <= 0 or dst_rate_hz <= 0:
        raise ValueError("sample rates must be > 0")
    if src_rate_hz == dst_rate_hz:
        return np.asarray(samples, dtype=np.float32)

    g = gcd(src_rate_hz, dst_rate_hz)
    up = dst_rate_hz // g
    down = src_rate_hz // g
    out = signal.resample_poly(samples, up, down, axis=0)
    return out.astype(np.float32)
