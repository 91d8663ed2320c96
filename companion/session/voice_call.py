"""
Voice call session (lifecycle manager).

Responsibilities:
- Own the SessionState of one call (status, mute, forwarding, counters)
- Acquire the microphone, playback context and uplink on start()
- Route captured blocks -> Capture Stage -> uplink (mute enforced here)
- Route uplink events -> Playback Scheduler / lifecycle transitions
- Tear everything down exactly once, whatever ends the call

Non-responsibilities:
- Wire encoding (audio.wire_codec, uplink.protocol)
- Scheduling math (playback.scheduler)
- Transition table (session.lifecycle)

Teardown order: stop forwarding, close uplink, close microphone, close
playback context, clear active playback. Every step runs even if an
earlier one fails.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from typing import Any, Protocol, runtime_checkable
from uuid import uuid4

import numpy as np

from audio.capture import CaptureStage, MicrophoneSource, MicrophoneUnavailable
from audio.frames import AudioFormatError, EncodedFrame
from audio.wire_codec import decode_frame
from constants import (
    DOWNLINK_SAMPLE_RATE_HZ,
    STATUS_TEXT_CLOSED,
    STATUS_TEXT_CONNECT_FAILED,
    STATUS_TEXT_CONNECTING,
    STATUS_TEXT_CONNECTION_LOST,
    STATUS_TEXT_IDLE,
    STATUS_TEXT_LISTENING,
    STATUS_TEXT_MIC_UNAVAILABLE,
    STATUS_TEXT_SPEAKER_UNAVAILABLE,
    STATUS_TEXT_SPEAKING,
)
from observability.logger import log_event
from observability.metrics import discard_timer, start_timer, stop_timer
from playback.context import PlaybackContext
from playback.scheduler import PlaybackScheduler
from session.connection_status import Activity, ConnectionStatus
from session.lifecycle import LifecycleSignal, is_terminal, transition
from uplink.channel import UplinkOpenError
from uplink.events import (
    AudioChunk,
    Closed,
    Interrupted,
    Opened,
    TurnComplete,
    UplinkError,
    UplinkEvent,
)


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def _now_ms() -> int:
    return int(time.time() * 1000)


def new_call_id() -> str:
    return f"call_{uuid4().hex[:12]}"


# ---------------------------------------------------------------------
# Collaborator protocols
# ---------------------------------------------------------------------

@runtime_checkable
class UplinkChannelProtocol(Protocol):
    async def open(self) -> None: ...
    def send(self, frame: EncodedFrame) -> bool: ...
    async def close(self) -> None: ...


EmitUplinkEvent = Callable[[UplinkEvent], Awaitable[None]]
UplinkFactory = Callable[[EmitUplinkEvent], UplinkChannelProtocol]
PlaybackFactory = Callable[[], PlaybackContext]
StatusListener = Callable[["SessionState"], None]


# ---------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------

@dataclass
class SessionState:
    """
    Mutable per-call state. Owned and mutated only by VoiceCallSession.

    Listeners receive copies.
    """

    call_id: str
    created_at: float = field(default_factory=time.time)

    status: ConnectionStatus = ConnectionStatus.IDLE
    activity: Activity = Activity.LISTENING
    status_text: str = STATUS_TEXT_IDLE
    last_error: str | None = None

    muted: bool = False
    forwarding: bool = False

    frames_captured: int = 0
    frames_forwarded: int = 0
    frames_suppressed: int = 0
    frames_dropped_malformed: int = 0

    def log_context(self) -> dict[str, Any]:
        return {
            "call_id": self.call_id,
            "status": self.status.value,
            "activity": self.activity.value,
            "muted": self.muted,
        }


# ---------------------------------------------------------------------
# VoiceCallSession
# ---------------------------------------------------------------------

class VoiceCallSession:
    """One instance == one call. Not restartable once ended."""

    def __init__(
        self,
        *,
        microphone: MicrophoneSource,
        playback_factory: PlaybackFactory,
        uplink_factory: UplinkFactory,
        on_status: StatusListener | None = None,
        call_id: str | None = None,
    ) -> None:
        self._microphone = microphone
        self._playback_factory = playback_factory
        self._uplink_factory = uplink_factory
        self._on_status = on_status

        self._state = SessionState(call_id=call_id or new_call_id())

        self._capture: CaptureStage | None = None
        self._playback: PlaybackContext | None = None
        self._scheduler: PlaybackScheduler | None = None
        self._uplink: UplinkChannelProtocol | None = None

        self._teardown_task: asyncio.Future[None] | None = None
        self._connect_timer: str | None = None
        self._duration_timer: str | None = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def call_id(self) -> str:
        return self._state.call_id

    @property
    def state(self) -> SessionState:
        """Snapshot of the current state."""
        return replace(self._state)

    @property
    def scheduler(self) -> PlaybackScheduler | None:
        return self._scheduler

    @property
    def is_ended(self) -> bool:
        return is_terminal(self._state.status)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        IDLE -> CONNECTING, then acquire microphone, playback and uplink.

        Any acquisition failure ends the call in ERROR. Never raises for
        acquisition failures; the outcome is visible in state.
        """
        if not self._apply(LifecycleSignal.CALL_STARTED):
            return
        self._state.status_text = STATUS_TEXT_CONNECTING
        self._notify()
        self._connect_timer = start_timer("call_connect_ms")

        try:
            await self._microphone.open(self._on_captured_block)
        except MicrophoneUnavailable as e:
            await self._fail(STATUS_TEXT_MIC_UNAVAILABLE, f"microphone: {e}")
            return
        if self._teardown_task is not None:
            await self._microphone.close()
            return

        self._capture = CaptureStage(source_rate_hz=self._microphone.sample_rate_hz)

        try:
            self._playback = self._playback_factory()
        except Exception as e:  # pylint: disable=broad-exception-caught
            await self._fail(STATUS_TEXT_SPEAKER_UNAVAILABLE, f"playback: {type(e).__name__}: {e}")
            return
        self._scheduler = PlaybackScheduler(
            context=self._playback,
            on_idle=self._on_playback_idle,
        )

        self._uplink = self._uplink_factory(self.handle_uplink_event)
        try:
            await self._uplink.open()
        except UplinkOpenError as e:
            await self._fail(STATUS_TEXT_CONNECT_FAILED, f"uplink: {e}")
            return

    def toggle_mute(self) -> bool:
        """Flip the mute flag. Returns the new value."""
        self.set_muted(not self._state.muted)
        return self._state.muted

    def set_muted(self, muted: bool) -> None:
        """Mute only gates forwarding; the microphone keeps running."""
        if self._state.muted == muted:
            return
        self._state.muted = muted
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CALL_MUTE_CHANGED",
            **self._state.log_context(),
        })
        self._notify()

    async def hang_up(self) -> None:
        await self.teardown(LifecycleSignal.HANG_UP)

    # ------------------------------------------------------------------
    # Uplink events
    # ------------------------------------------------------------------

    async def handle_uplink_event(self, event: UplinkEvent) -> None:
        """Single entry point for everything the uplink reports."""
        if isinstance(event, Opened):
            self._on_remote_opened()
        elif isinstance(event, AudioChunk):
            self._on_audio_chunk(event.frame)
        elif isinstance(event, Interrupted):
            if self._scheduler is not None and not self.is_ended:
                self._scheduler.interrupt()
        elif isinstance(event, TurnComplete):
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CALL_TURN_COMPLETE",
                **self._state.log_context(),
            })
        elif isinstance(event, Closed):
            await self.teardown(LifecycleSignal.REMOTE_CLOSED, reason=event.reason)
        elif isinstance(event, UplinkError):
            self._state.last_error = event.reason
            await self.teardown(
                LifecycleSignal.FAILURE,
                status_text=STATUS_TEXT_CONNECTION_LOST,
                reason=event.reason,
            )
        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CALL_UNKNOWN_UPLINK_EVENT",
                "uplink_event_type": getattr(event, "event_type", None),
                **self._state.log_context(),
            })

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def teardown(
        self,
        signal: LifecycleSignal = LifecycleSignal.HANG_UP,
        *,
        status_text: str | None = None,
        reason: str | None = None,
    ) -> None:
        """
        Release every resource of the call. Idempotent.

        The first caller decides the final status; concurrent and later
        callers wait for that same release and change nothing.
        """
        if self._teardown_task is None:
            self._teardown_task = asyncio.ensure_future(
                self._release(signal, status_text=status_text, reason=reason)
            )
        await asyncio.shield(self._teardown_task)

    async def _release(
        self,
        signal: LifecycleSignal,
        *,
        status_text: str | None,
        reason: str | None,
    ) -> None:
        was_open = self._state.status is ConnectionStatus.OPEN
        self._apply(signal, reason=reason)

        self._state.forwarding = False

        uplink, self._uplink = self._uplink, None
        if uplink is not None:
            await self._release_step("uplink", uplink.close)

        await self._release_step("microphone", self._microphone.close)

        playback, self._playback = self._playback, None
        if playback is not None:
            await self._release_step("playback_context", playback.close)

        units_cleared = self._scheduler.clear() if self._scheduler is not None else 0

        self._state.activity = Activity.LISTENING
        if self._state.status is ConnectionStatus.ERROR:
            self._state.status_text = status_text or STATUS_TEXT_CONNECTION_LOST
        else:
            self._state.status_text = STATUS_TEXT_CLOSED

        if self._connect_timer is not None:
            discard_timer(self._connect_timer)
            self._connect_timer = None
        if was_open and self._duration_timer is not None:
            stop_timer(
                self._duration_timer,
                call_id=self.call_id,
                status=self._state.status.value,
                details={
                    "frames_forwarded": self._state.frames_forwarded,
                    "frames_suppressed": self._state.frames_suppressed,
                },
            )
            self._duration_timer = None

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CALL_TORN_DOWN",
            "signal": signal.value,
            "reason": reason,
            "units_cleared": units_cleared,
            "last_error": self._state.last_error,
            **self._state.log_context(),
        })
        self._notify()

    async def _release_step(self, name: str, close: Callable[[], Awaitable[None]]) -> None:
        try:
            await close()
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CALL_RELEASE_ERROR",
                "resource": name,
                "error": f"{type(e).__name__}: {e}",
                "call_id": self.call_id,
            })

    async def _fail(self, status_text: str, error: str) -> None:
        if self._teardown_task is None:
            self._state.last_error = error
        await self.teardown(LifecycleSignal.FAILURE, status_text=status_text, reason=error)

    # ------------------------------------------------------------------
    # Internal handlers
    # ------------------------------------------------------------------

    def _on_remote_opened(self) -> None:
        if not self._apply(LifecycleSignal.REMOTE_OPENED):
            return

        self._state.forwarding = True
        self._state.activity = Activity.LISTENING
        self._state.status_text = STATUS_TEXT_LISTENING

        if self._connect_timer is not None:
            stop_timer(self._connect_timer, call_id=self.call_id, status=self._state.status.value)
            self._connect_timer = None
        self._duration_timer = start_timer("call_duration_ms")

        self._notify()

    def _on_captured_block(self, samples: np.ndarray) -> None:
        capture = self._capture
        if capture is None:
            return

        frame = capture.process_block(samples)
        self._state.frames_captured += 1

        uplink = self._uplink
        if not self._state.forwarding or uplink is None:
            return
        if self._state.muted:
            self._state.frames_suppressed += 1
            return
        if uplink.send(frame):
            self._state.frames_forwarded += 1

    def _on_audio_chunk(self, frame: EncodedFrame) -> None:
        scheduler = self._scheduler
        if self._state.status is not ConnectionStatus.OPEN or scheduler is None:
            # Late audio after close (or before open) is discarded
            return

        try:
            packet = decode_frame(frame, default_rate_hz=DOWNLINK_SAMPLE_RATE_HZ)
        except AudioFormatError as e:
            self._state.frames_dropped_malformed += 1
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "DOWNLINK_FRAME_MALFORMED",
                "error": f"{type(e).__name__}: {e}",
                "dropped_total": self._state.frames_dropped_malformed,
                **self._state.log_context(),
            })
            return

        scheduler.schedule(packet)

        if self._state.activity is not Activity.SPEAKING:
            self._state.activity = Activity.SPEAKING
            self._state.status_text = STATUS_TEXT_SPEAKING
            self._notify()

    def _on_playback_idle(self) -> None:
        if self._state.status is not ConnectionStatus.OPEN:
            return
        if self._state.activity is Activity.LISTENING:
            return
        self._state.activity = Activity.LISTENING
        self._state.status_text = STATUS_TEXT_LISTENING
        self._notify()

    def _apply(self, signal: LifecycleSignal, *, reason: str | None = None) -> bool:
        previous = self._state.status
        result = transition(previous, signal)
        if not result.changed:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CALL_SIGNAL_IGNORED",
                "signal": signal.value,
                **self._state.log_context(),
            })
            return False

        self._state.status = result.status
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CALL_STATUS_CHANGED",
            "decision": "state_changed",
            "from": previous.value,
            "to": result.status.value,
            "signal": signal.value,
            "reason": reason,
            "call_id": self.call_id,
        })
        return True

    def _notify(self) -> None:
        if self._on_status is None:
            return
        self._on_status(self.state)
