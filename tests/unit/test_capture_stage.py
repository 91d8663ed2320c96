# pylint: disable=missing-module-docstring,missing-function-docstring

import numpy as np
import pytest

from audio.capture import CaptureStage
from audio.wire_codec import decode_bytes, decode_frame
from constants import CAPTURE_BLOCK_SAMPLES, UPLINK_MEDIA_TYPE


def test_block_at_uplink_rate_is_encoded_directly() -> None:
    stage = CaptureStage(source_rate_hz=16_000)
    block = np.full(CAPTURE_BLOCK_SAMPLES, 0.5, dtype=np.float32)

    frame = stage.process_block(block)

    assert frame.media_type == UPLINK_MEDIA_TYPE
    pcm = decode_bytes(frame.data)
    assert len(pcm) == 2 * CAPTURE_BLOCK_SAMPLES
    assert set(np.frombuffer(pcm, dtype="<i2").tolist()) == {16384}


def test_one_frame_per_block() -> None:
    stage = CaptureStage(source_rate_hz=16_000)

    frames = [stage.process_block(np.zeros(256, dtype=np.float32)) for _ in range(3)]

    assert len(frames) == 3
    assert all(decode_frame(f).sample_count == 256 for f in frames)


def test_device_rate_is_resampled_to_uplink_rate() -> None:
    stage = CaptureStage(source_rate_hz=48_000)

    packet = stage.to_packet(np.zeros(4800, dtype=np.float32))

    assert packet.sample_rate_hz == 16_000
    assert packet.sample_count == 1600


def test_multichannel_block_is_downmixed() -> None:
    stage = CaptureStage(source_rate_hz=16_000)
    block = np.column_stack([np.full(8, 0.5), np.full(8, -0.5)]).astype(np.float32)

    packet = stage.to_packet(block)

    assert packet.channels == 1
    assert np.frombuffer(packet.pcm_bytes, dtype="<i2").tolist() == [0] * 8


def test_clipping_input_saturates() -> None:
    stage = CaptureStage(source_rate_hz=16_000)

    packet = stage.to_packet(np.array([1.5, -1.5], dtype=np.float32))

    assert np.frombuffer(packet.pcm_bytes, dtype="<i2").tolist() == [32767, -32768]


def test_invalid_rates_rejected() -> None:
    with pytest.raises(ValueError):
        CaptureStage(source_rate_hz=0)
