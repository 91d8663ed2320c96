"""
Host microphone backed by sounddevice (PortAudio).

The PortAudio callback runs on an audio thread; every block is copied and
handed to the asyncio loop with call_soon_threadsafe so the rest of the
pipeline only ever runs on the loop thread.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import numpy as np
import sounddevice as sd

from audio.capture import BlockCallback, MicrophoneUnavailable
from constants import CAPTURE_BLOCK_SAMPLES, UPLINK_SAMPLE_RATE_HZ
from observability.logger import log_event


def _now_ms() -> int:
    return int(time.time() * 1000)


class SoundDeviceMicrophone:
    """
    Mono float32 input stream.

    Requests the uplink rate directly; when the device refuses it, the
    device default rate is used and the Capture Stage resamples.
    """

    def __init__(
        self,
        *,
        device: int | None = None,
        sample_rate_hz: int = UPLINK_SAMPLE_RATE_HZ,
        block_samples: int = CAPTURE_BLOCK_SAMPLES,
    ) -> None:
        self._device = device
        self.sample_rate_hz = sample_rate_hz
        self._block_samples = block_samples
        self._stream: sd.InputStream | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._on_block: BlockCallback | None = None

    async def open(self, on_block: BlockCallback) -> None:
        if self._stream is not None:
            return

        self._loop = asyncio.get_running_loop()
        self._on_block = on_block

        try:
            self.sample_rate_hz = self._negotiate_rate()
            stream = sd.InputStream(
                samplerate=self.sample_rate_hz,
                channels=1,
                dtype="float32",
                blocksize=self._block_samples,
                device=self._device,
                callback=self._callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            self._on_block = None
            raise MicrophoneUnavailable(f"{type(e).__name__}: {e}") from e

        self._stream = stream
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "MIC_OPENED",
            "device": self._device,
            "sample_rate_hz": self.sample_rate_hz,
        })

    async def close(self) -> None:
        stream = self._stream
        self._stream = None
        self._on_block = None
        if stream is None:
            return

        try:
            stream.stop()
        finally:
            stream.close()

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "MIC_CLOSED",
            "device": self._device,
        })

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _negotiate_rate(self) -> int:
        try:
            sd.check_input_settings(
                device=self._device,
                channels=1,
                dtype="float32",
                samplerate=self.sample_rate_hz,
            )
            return self.sample_rate_hz
        except sd.PortAudioError:
            info = sd.query_devices(self._device, "input")
            return int(info["default_samplerate"])

    def _callback(
        self,
        indata: np.ndarray,
        frames: int,  # pylint: disable=unused-argument
        time_info: Any,  # pylint: disable=unused-argument
        status: sd.CallbackFlags,
    ) -> None:
        loop = self._loop
        on_block = self._on_block
        if loop is None or on_block is None or loop.is_closed():
            return
        if status:
            loop.call_soon_threadsafe(
                log_event,
                {"ts_ms": _now_ms(), "event_type": "MIC_STATUS", "status": str(status)},
            )
        # PortAudio reuses indata after the callback returns
        loop.call_soon_threadsafe(on_block, indata[:, 0].copy())
