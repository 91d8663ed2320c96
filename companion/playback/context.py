"""
Playback context: an audio clock plus a way to start buffers at a
given clock time.

The scheduler only depends on the protocols below. The host-audio
implementation lives in playback.device.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

import numpy as np


# ---------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class PlaybackHandle(Protocol):
    def stop(self) -> None:
        """Stop playback without firing the ended callback. Idempotent."""


@runtime_checkable
class PlaybackContext(Protocol):
    """
    Contract:
    - current_time is monotonic non-decreasing, in seconds
    - start() plays samples (frames, channels) beginning at clock time `at`
      and calls on_ended on the event loop after natural completion
    - close() releases the output device; idempotent
    """

    @property
    def sample_rate_hz(self) -> int: ...

    @property
    def current_time(self) -> float: ...

    def start(
        self,
        samples: np.ndarray,
        *,
        at: float,
        on_ended: Callable[[], None],
    ) -> PlaybackHandle: ...

    async def close(self) -> None: ...

