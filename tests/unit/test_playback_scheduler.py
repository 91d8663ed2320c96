# pylint: disable=missing-module-docstring,missing-function-docstring

import random
from collections.abc import Callable

import numpy as np
import pytest

from audio.frames import AudioPacket
from playback.scheduler import PlaybackScheduler, PlaybackUnitState, plan_start


class FakeHandle:
    def __init__(self) -> None:
        self.stopped = 0

    def stop(self) -> None:
        self.stopped += 1


class FakeContext:
    """Settable clock; records every start() call."""

    def __init__(self, sample_rate_hz: int = 24_000) -> None:
        self.sample_rate_hz = sample_rate_hz
        self.current_time = 0.0
        self.started: list[tuple[np.ndarray, float, Callable[[], None], FakeHandle]] = []
        self.closed = 0

    def start(self, samples: np.ndarray, *, at: float, on_ended: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle()
        self.started.append((samples, at, on_ended, handle))
        return handle

    async def close(self) -> None:
        self.closed += 1


def packet_of(duration_s: float, rate: int = 24_000) -> AudioPacket:
    return AudioPacket(pcm_bytes=b"\x00\x00" * int(duration_s * rate), sample_rate_hz=rate)


# ---------------------------------------------------------------------
# Pure scheduling rule
# ---------------------------------------------------------------------

def test_plan_start_queues_behind_previous() -> None:
    assert plan_start(0.5, 0.2, 0.5) == (0.5, 1.0)


def test_plan_start_late_arrival_starts_now() -> None:
    assert plan_start(1.0, 1.5, 0.5) == (1.5, 2.0)


def test_plan_start_no_gap_no_overlap_property() -> None:
    rng = random.Random(1234)
    next_start = 0.0
    prev_start = None
    prev_duration = None
    now = 0.0

    for _ in range(500):
        now += rng.uniform(0.0, 0.6)
        duration = rng.uniform(0.01, 0.5)

        start, next_start = plan_start(next_start, now, duration)

        if prev_start is not None:
            assert start >= prev_start
            assert start >= prev_start + prev_duration
            assert start == max(prev_start + prev_duration, now)
        prev_start, prev_duration = start, duration


# ---------------------------------------------------------------------
# Scheduler against a fake clock
# ---------------------------------------------------------------------

def test_back_to_back_scheduling() -> None:
    ctx = FakeContext()
    scheduler = PlaybackScheduler(context=ctx)

    first = scheduler.schedule(packet_of(0.5))
    assert first.start_time == 0.0
    assert scheduler.next_start == pytest.approx(0.5)

    ctx.current_time = 0.2
    second = scheduler.schedule(packet_of(0.5))
    assert second.start_time == pytest.approx(0.5)
    assert scheduler.next_start == pytest.approx(1.0)

    assert [at for _, at, _, _ in ctx.started] == [0.0, pytest.approx(0.5)]


def test_late_frame_starts_at_arrival() -> None:
    ctx = FakeContext()
    scheduler = PlaybackScheduler(context=ctx)
    scheduler.schedule(packet_of(0.5))
    ctx.current_time = 0.2
    scheduler.schedule(packet_of(0.5))
    assert scheduler.next_start == pytest.approx(1.0)

    ctx.current_time = 1.5
    late = scheduler.schedule(packet_of(0.5))

    assert late.start_time == pytest.approx(1.5)
    assert scheduler.next_start == pytest.approx(2.0)


def test_samples_are_float_frames_by_channels() -> None:
    ctx = FakeContext()
    scheduler = PlaybackScheduler(context=ctx)

    unit = scheduler.schedule(packet_of(0.01))

    assert unit.samples.shape == (240, 1)
    assert unit.samples.dtype == np.float32
    assert unit.state is PlaybackUnitState.SCHEDULED


def test_natural_completion_retires_and_signals_idle_once() -> None:
    idle_calls: list[int] = []
    ctx = FakeContext()
    scheduler = PlaybackScheduler(context=ctx, on_idle=lambda: idle_calls.append(1))

    a = scheduler.schedule(packet_of(0.1))
    b = scheduler.schedule(packet_of(0.1))
    assert scheduler.is_playing

    ctx.started[0][2]()
    assert a.state is PlaybackUnitState.RETIRED
    assert idle_calls == []

    ctx.started[1][2]()
    assert b.state is PlaybackUnitState.RETIRED
    assert idle_calls == [1]
    assert not scheduler.is_playing

    # A late duplicate completion is ignored
    ctx.started[1][2]()
    assert idle_calls == [1]


def test_interrupt_stops_everything_and_resets_clock() -> None:
    idle_calls: list[int] = []
    ctx = FakeContext()
    scheduler = PlaybackScheduler(context=ctx, on_idle=lambda: idle_calls.append(1))
    scheduler.schedule(packet_of(0.5))
    scheduler.schedule(packet_of(0.5))

    scheduler.interrupt()

    assert all(handle.stopped == 1 for _, _, _, handle in ctx.started)
    assert scheduler.next_start == 0.0
    assert not scheduler.active_units
    assert idle_calls == [1]

    # Next packet plays from "now", not from the old queue tail
    ctx.current_time = 0.3
    unit = scheduler.schedule(packet_of(0.5))
    assert unit.start_time == pytest.approx(0.3)


def test_interrupt_when_idle_does_not_signal() -> None:
    idle_calls: list[int] = []
    scheduler = PlaybackScheduler(context=FakeContext(), on_idle=lambda: idle_calls.append(1))

    scheduler.interrupt()

    assert idle_calls == []


def test_clear_stops_without_signaling() -> None:
    idle_calls: list[int] = []
    ctx = FakeContext()
    scheduler = PlaybackScheduler(context=ctx, on_idle=lambda: idle_calls.append(1))
    scheduler.schedule(packet_of(0.5))
    scheduler.schedule(packet_of(0.5))

    assert scheduler.clear() == 2
    assert scheduler.clear() == 0

    assert idle_calls == []
    assert all(handle.stopped == 1 for _, _, _, handle in ctx.started)

    # Completion callbacks racing the clear are ignored
    ctx.started[0][2]()
    assert idle_calls == []


# ---------------------------------------------------------------------
# Declared rate differs from the output rate
# ---------------------------------------------------------------------

def test_non_output_rate_packet_is_resampled_before_scheduling() -> None:
    ctx = FakeContext(sample_rate_hz=24_000)
    scheduler = PlaybackScheduler(context=ctx)

    first = scheduler.schedule(packet_of(1.0, rate=16_000))
    second = scheduler.schedule(packet_of(0.5))

    # One second of 16 kHz audio renders as 24 000 output samples
    assert first.samples.shape == (24_000, 1)
    assert first.duration_s == pytest.approx(1.0)
    assert second.start_time == pytest.approx(first.start_time + len(first.samples) / 24_000)


def test_high_rate_packet_does_not_overlap_next_unit() -> None:
    ctx = FakeContext(sample_rate_hz=24_000)
    scheduler = PlaybackScheduler(context=ctx)

    first = scheduler.schedule(packet_of(0.5, rate=48_000))
    second = scheduler.schedule(packet_of(0.5))

    rendered_end = first.start_time + len(ctx.started[0][0]) / ctx.sample_rate_hz
    assert second.start_time >= rendered_end - 1e-9
    assert second.start_time == pytest.approx(0.5)


def test_multichannel_packet_keeps_channels_when_resampled() -> None:
    scheduler = PlaybackScheduler(context=FakeContext(sample_rate_hz=24_000))
    packet = AudioPacket(pcm_bytes=b"\x00\x00" * 2 * 1600, sample_rate_hz=16_000, channels=2)

    unit = scheduler.decode(packet)

    assert unit.samples.shape == (2400, 2)
