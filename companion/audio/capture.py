"""
Capture Stage.

Turns host-audio float blocks into uplink EncodedFrames:

    float block (device rate) -> mono -> resample -> PCM16 LE -> base64

Invariants:
- One EncodedFrame per input block
- No buffering across blocks
- Output is always 16-bit PCM, mono, at target_rate_hz

Mute is NOT handled here. The session decides at forward time whether
a produced frame reaches the uplink.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

import numpy as np

from audio.frames import AudioPacket, EncodedFrame
from audio.pcm import float_to_pcm16, resample, to_mono
from audio.wire_codec import encode_packet
from constants import UPLINK_SAMPLE_RATE_HZ


class MicrophoneUnavailable(Exception):
    """Raised when the input device cannot be opened (permission, no device)."""


BlockCallback = Callable[[np.ndarray], None]


@runtime_checkable
class MicrophoneSource(Protocol):
    """
    Live input stream capability.

    Contract:
    - open() starts delivering float32 blocks to on_block on the event loop
      thread; raises MicrophoneUnavailable on failure.
    - close() stops delivery and releases the device; idempotent.
    """

    sample_rate_hz: int

    async def open(self, on_block: BlockCallback) -> None: ...
    async def close(self) -> None: ...


class CaptureStage:
    """
    Stateless per-block encoder for the uplink.

    The source rate is fixed for the lifetime of a call; the target rate
    defaults to the uplink rate.
    """

    def __init__(
        self,
        *,
        source_rate_hz: int,
        target_rate_hz: int = UPLINK_SAMPLE_RATE_HZ,
    ) -> None:
        if source_rate_hz <= 0 or target_rate_hz <= 0:
            raise ValueError("sample rates must be > 0")
        self._source_rate_hz = source_rate_hz
        self._target_rate_hz = target_rate_hz

    @property
    def target_rate_hz(self) -> int:
        return self._target_rate_hz

    def to_packet(self, samples: np.ndarray) -> AudioPacket:
        mono = to_mono(samples)
        if self._source_rate_hz != self._target_rate_hz:
            mono = resample(mono, self._source_rate_hz, self._target_rate_hz)
        return AudioPacket(
            pcm_bytes=float_to_pcm16(mono),
            sample_rate_hz=self._target_rate_hz,
        )

    def process_block(self, samples: np.ndarray) -> EncodedFrame:
        """Encode one host-audio block into one uplink frame."""
        return encode_packet(self.to_packet(samples))
