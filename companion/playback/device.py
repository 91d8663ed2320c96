"""
sounddevice (PortAudio) output for the Playback Scheduler.

Every scheduled buffer is mixed into a single output stream. The clock
is frames rendered / output rate, so it only advances while the device
is consuming audio.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import numpy as np
import sounddevice as sd

from constants import DOWNLINK_SAMPLE_RATE_HZ, PLAYBACK_BLOCK_SAMPLES
from observability.logger import log_event
from playback.context import PlaybackHandle


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(eq=False)
class _Voice:
    """One scheduled buffer inside the output mixer."""
    start_frame: int
    samples: np.ndarray  # (frames, channels) float32
    on_ended: Callable[[], None]
    stopped: bool = False

    @property
    def end_frame(self) -> int:
        return self.start_frame + len(self.samples)

    def stop(self) -> None:
        self.stopped = True


class SoundDevicePlaybackContext:
    """Mixes scheduled float buffers into one sounddevice OutputStream."""

    def __init__(
        self,
        *,
        device: int | None = None,
        sample_rate_hz: int = DOWNLINK_SAMPLE_RATE_HZ,
        channels: int = 1,
        block_samples: int = PLAYBACK_BLOCK_SAMPLES,
    ) -> None:
        self._sample_rate_hz = sample_rate_hz
        self._channels = channels
        self._loop = asyncio.get_running_loop()
        self._lock = threading.Lock()
        self._voices: list[_Voice] = []
        self._frames_rendered = 0
        self._closed = False

        self._stream = sd.OutputStream(
            samplerate=sample_rate_hz,
            channels=channels,
            dtype="float32",
            blocksize=block_samples,
            device=device,
            callback=self._callback,
        )
        self._stream.start()

    @property
    def sample_rate_hz(self) -> int:
        return self._sample_rate_hz

    @property
    def current_time(self) -> float:
        with self._lock:
            return self._frames_rendered / self._sample_rate_hz

    def start(
        self,
        samples: np.ndarray,
        *,
        at: float,
        on_ended: Callable[[], None],
    ) -> PlaybackHandle:
        data = np.asarray(samples, dtype=np.float32)
        if data.ndim == 1:
            data = data.reshape(-1, 1)
        if data.shape[1] != self._channels:
            data = np.repeat(data[:, :1], self._channels, axis=1)

        voice = _Voice(
            start_frame=int(round(at * self._sample_rate_hz)),
            samples=data,
            on_ended=on_ended,
        )
        with self._lock:
            if self._closed:
                return voice
            self._voices.append(voice)
            # The device may have rendered past `at` since the caller read the clock
            late_frames = self._frames_rendered - voice.start_frame

        if late_frames > 0:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "PLAYBACK_LATE_START",
                "late_frames": late_frames,
                "late_ms": late_frames * 1000 // self._sample_rate_hz,
                "clipped": late_frames >= len(data),
            })
        return voice

    async def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._voices.clear()

        try:
            self._stream.stop()
        finally:
            self._stream.close()

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "PLAYBACK_CONTEXT_CLOSED",
        })

    # ------------------------------------------------------------------
    # Audio thread
    # ------------------------------------------------------------------

    def _callback(
        self,
        outdata: np.ndarray,
        frames: int,
        time_info: Any,  # pylint: disable=unused-argument
        status: sd.CallbackFlags,  # pylint: disable=unused-argument
    ) -> None:
        outdata.fill(0.0)
        finished: list[_Voice] = []

        with self._lock:
            block_start = self._frames_rendered
            block_end = block_start + frames

            for voice in self._voices:
                if voice.stopped:
                    continue
                lo = max(block_start, voice.start_frame)
                hi = min(block_end, voice.end_frame)
                if lo < hi:
                    src = voice.samples[lo - voice.start_frame: hi - voice.start_frame]
                    outdata[lo - block_start: hi - block_start] += src
                if voice.end_frame <= block_end:
                    finished.append(voice)

            self._voices = [
                v for v in self._voices
                if not v.stopped and v not in finished
            ]
            self._frames_rendered = block_end

        np.clip(outdata, -1.0, 1.0, out=outdata)

        if self._loop.is_closed():
            return
        for voice in finished:
            if not voice.stopped:
                self._loop.call_soon_threadsafe(voice.on_ended)
