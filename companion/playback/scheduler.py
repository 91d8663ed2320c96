"""
Playback Scheduler.

Renders downlink packets as gap-free, non-overlapping speech even though
they arrive at irregular intervals.

Scheduling rule (the only ordering guarantee against overlap):

    start      = max(next_start, now)
    next_start = start + duration

Packets are scheduled in arrival order. A burst queues back-to-back
behind whatever is already scheduled; a late packet starts immediately.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import numpy as np

from audio.frames import AudioPacket
from audio.pcm import pcm16le_to_float32, resample
from observability.logger import log_event
from playback.context import PlaybackContext, PlaybackHandle


def _now_ms() -> int:
    return int(time.time() * 1000)


def plan_start(next_start: float, now: float, duration: float) -> tuple[float, float]:
    """
    Pure scheduling step.

    Returns:
        (scheduled_start, new_next_start)
    """
    start = max(next_start, now)
    return start, start + duration


class PlaybackUnitState(str, Enum):
    PENDING = "PENDING"
    SCHEDULED = "SCHEDULED"
    RETIRED = "RETIRED"


@dataclass(eq=False)
class PlaybackUnit:
    """
    A decoded packet bound to its start time and playback handle.

    samples are already at the output rate (sample_rate_hz), so the
    duration is what the context will actually render.
    """
    packet: AudioPacket
    samples: np.ndarray
    sample_rate_hz: int
    start_time: float = 0.0
    handle: PlaybackHandle | None = None
    state: PlaybackUnitState = PlaybackUnitState.PENDING

    @property
    def duration_s(self) -> float:
        return len(self.samples) / self.sample_rate_hz

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration_s


class PlaybackScheduler:
    """
    Owns the scheduling ledger for one call: next_start and the set of
    units still playing.

    on_idle fires whenever the active set goes from non-empty to empty
    through natural completion or interrupt(). clear() never fires it.
    """

    def __init__(
        self,
        *,
        context: PlaybackContext,
        on_idle: Callable[[], None] | None = None,
    ) -> None:
        self._context = context
        self._on_idle = on_idle
        self._next_start: float = 0.0
        self._active: set[PlaybackUnit] = set()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def next_start(self) -> float:
        return self._next_start

    @property
    def active_units(self) -> frozenset[PlaybackUnit]:
        return frozenset(self._active)

    @property
    def is_playing(self) -> bool:
        return bool(self._active)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def decode(self, packet: AudioPacket) -> PlaybackUnit:
        """
        Deinterleave PCM16 into float samples (frames, channels) at the
        context output rate.
        """
        output_rate = self._context.sample_rate_hz
        samples = pcm16le_to_float32(packet.pcm_bytes, packet.channels)
        if packet.sample_rate_hz != output_rate:
            samples = resample(samples, packet.sample_rate_hz, output_rate)
        return PlaybackUnit(packet=packet, samples=samples, sample_rate_hz=output_rate)

    def schedule(self, packet: AudioPacket) -> PlaybackUnit:
        """Decode a packet and schedule it after everything already queued."""
        unit = self.decode(packet)

        now = self._context.current_time
        start, self._next_start = plan_start(self._next_start, now, unit.duration_s)

        unit.start_time = start
        unit.handle = self._context.start(
            unit.samples,
            at=start,
            on_ended=lambda: self._retire(unit),
        )
        unit.state = PlaybackUnitState.SCHEDULED
        self._active.add(unit)
        return unit

    def interrupt(self) -> None:
        """
        Stop everything that is queued or playing (remote barge-in).

        The clock restarts from "now" for the next packet.
        """
        was_playing = bool(self._active)
        stopped = self._stop_all()
        self._next_start = 0.0

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "PLAYBACK_INTERRUPTED",
            "units_stopped": stopped,
        })

        if was_playing and self._on_idle is not None:
            self._on_idle()

    def clear(self) -> int:
        """Stop and forget every unit without signaling idle. Returns the count."""
        return self._stop_all()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _stop_all(self) -> int:
        units = list(self._active)
        self._active.clear()
        for unit in units:
            if unit.handle is not None:
                unit.handle.stop()
            unit.state = PlaybackUnitState.RETIRED
        return len(units)

    def _retire(self, unit: PlaybackUnit) -> None:
        if unit not in self._active:
            # Already stopped by interrupt() or clear()
            return

        self._active.discard(unit)
        unit.state = PlaybackUnitState.RETIRED

        if not self._active and self._on_idle is not None:
            self._on_idle()
