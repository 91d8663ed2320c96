# pylint: disable=missing-module-docstring,missing-function-docstring

import numpy as np
import pytest

from audio.frames import AudioPacket, InvalidPacketLength
from audio.pcm import float_to_pcm16, pcm16le_to_float32, resample, to_mono


# ---------------------------------------------------------------------
# float -> PCM16
# ---------------------------------------------------------------------

def test_float_to_pcm16_known_values() -> None:
    pcm = float_to_pcm16(np.array([0.0, 0.5, -0.5, -1.0], dtype=np.float32))

    assert np.frombuffer(pcm, dtype="<i2").tolist() == [0, 16384, -16384, -32768]


def test_float_to_pcm16_is_little_endian() -> None:
    pcm = float_to_pcm16(np.array([0.5], dtype=np.float32))

    assert pcm == b"\x00\x40"


def test_full_scale_positive_saturates() -> None:
    # 1.0 * 32768 does not fit int16; it must not wrap to -32768
    pcm = float_to_pcm16(np.array([1.0, 2.0, -3.0], dtype=np.float32))

    assert np.frombuffer(pcm, dtype="<i2").tolist() == [32767, 32767, -32768]


def test_output_is_two_bytes_per_sample() -> None:
    assert len(float_to_pcm16(np.zeros(4096, dtype=np.float32))) == 8192


# ---------------------------------------------------------------------
# PCM16 -> float
# ---------------------------------------------------------------------

def test_pcm16le_to_float32_shape_and_scale() -> None:
    pcm = np.array([0, 16384, -32768], dtype="<i2").tobytes()

    out = pcm16le_to_float32(pcm)

    assert out.dtype == np.float32
    assert out.shape == (3, 1)
    assert out[:, 0].tolist() == [0.0, 0.5, -1.0]


def test_pcm16le_to_float32_deinterleaves_channels() -> None:
    pcm = np.array([1, -1, 2, -2], dtype="<i2").tobytes()

    out = pcm16le_to_float32(pcm, channels=2)

    assert out.shape == (2, 2)
    assert (out[:, 0] > 0).all()
    assert (out[:, 1] < 0).all()


def test_float_pcm_float_is_within_one_step() -> None:
    rng = np.random.default_rng(7)
    samples = rng.uniform(-0.99, 0.99, 512).astype(np.float32)

    back = pcm16le_to_float32(float_to_pcm16(samples))[:, 0]

    assert np.max(np.abs(back - samples)) <= 1.0 / 32768


# ---------------------------------------------------------------------
# AudioPacket
# ---------------------------------------------------------------------

def test_packet_rejects_partial_sample() -> None:
    with pytest.raises(InvalidPacketLength):
        AudioPacket(pcm_bytes=b"\x00\x00\x00", sample_rate_hz=24_000)


def test_packet_rejects_partial_stereo_frame() -> None:
    with pytest.raises(InvalidPacketLength):
        AudioPacket(pcm_bytes=b"\x00" * 6, sample_rate_hz=24_000, channels=2)


def test_packet_duration() -> None:
    packet = AudioPacket(pcm_bytes=b"\x00\x00" * 12_000, sample_rate_hz=24_000)

    assert packet.sample_count == 12_000
    assert packet.duration_s == pytest.approx(0.5)


# ---------------------------------------------------------------------
# Mono / resample
# ---------------------------------------------------------------------

def test_to_mono_averages_channels() -> None:
    block = np.array([[1.0, 0.0], [0.5, 0.5]], dtype=np.float32)

    assert to_mono(block).tolist() == [0.5, 0.5]


def test_to_mono_single_channel_column() -> None:
    block = np.array([[0.25], [0.75]], dtype=np.float32)

    assert to_mono(block).tolist() == [0.25, 0.75]


def test_resample_length() -> None:
    samples = np.zeros(4800, dtype=np.float32)

    assert len(resample(samples, 48_000, 16_000)) == 1600
    assert len(resample(np.zeros(4410, dtype=np.float32), 44_100, 16_000)) == 1600


def test_resample_same_rate_is_identity() -> None:
    samples = np.linspace(-1, 1, 64, dtype=np.float32)

    assert np.array_equal(resample(samples, 16_000, 16_000), samples)
