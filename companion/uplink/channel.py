"""
Uplink Channel: one long-lived duplex websocket session per call.

Lifecycle:
- open(): connect, send setup, start receive/send tasks, return.
  The remote acknowledgement arrives later as an Opened event.
- send(frame): enqueue one EncodedFrame; never blocks. Frames leave in
  enqueue order through a single sender task.
- close(): idempotent, emits nothing.

Event behavior:
- Every parsed server message is forwarded to emit_event in order.
- Malformed server messages are logged and skipped.
- Clean remote close -> Closed. Transport failure -> UplinkError.
- No events are emitted once close() has been called.

Design constraints:
- Channel must not own call state (status, mute, playback).
- Channel must not retry or reconnect.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import urlencode

from websockets.asyncio.client import connect as ws_connect

from audio.frames import EncodedFrame
from constants import LIVE_API_URL, LIVE_WS_MAX_MESSAGE_BYTES, UPLINK_QUEUE_MAX_FRAMES
from observability.logger import log_event
from uplink.events import Closed, UplinkError, UplinkEvent, UplinkEventType
from uplink.protocol import (
    ProtocolError,
    build_audio_message,
    build_setup_message,
    dumps,
    parse_server_message,
)


class UplinkOpenError(Exception):
    """Raised when the session cannot be established."""


def _now_ms() -> int:
    return int(time.time() * 1000)


class UplinkChannel:
    """
    Websocket transport for the live voice endpoint.

    One instance == one call. Not reusable after close().
    """

    def __init__(
        self,
        *,
        emit_event: Callable[[UplinkEvent], Awaitable[None]],
        api_key: str,
        model: str,
        voice: str,
        system_instruction: str | None = None,
        url: str = LIVE_API_URL,
        connect: Callable[..., Awaitable[Any]] = ws_connect,
        max_queued_frames: int = UPLINK_QUEUE_MAX_FRAMES,
        call_id: str | None = None,
    ) -> None:
        self._emit_event = emit_event
        self._api_key = api_key
        self._model = model
        self._voice = voice
        self._system_instruction = system_instruction
        self._url = url
        self._connect = connect
        self._call_id = call_id

        self._ws: Any = None
        self._outgoing: asyncio.Queue[EncodedFrame] = asyncio.Queue(maxsize=max_queued_frames)
        self._recv_task: asyncio.Task[None] | None = None
        self._send_task: asyncio.Task[None] | None = None

        self._closing = False
        self.frames_sent = 0
        self.frames_dropped = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and not self._closing

    async def open(self) -> None:
        """
        Connect and send the setup message.

        Raises:
            UplinkOpenError on connect or setup failure.
        """
        if self._ws is not None or self._closing:
            raise UplinkOpenError("channel already opened")

        try:
            ws = await self._connect(
                self._build_url(),
                max_size=LIVE_WS_MAX_MESSAGE_BYTES,
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise UplinkOpenError(f"connect_failed: {type(e).__name__}: {e}") from e

        try:
            await ws.send(dumps(build_setup_message(
                model=self._model,
                voice=self._voice,
                system_instruction=self._system_instruction,
            )))
        except Exception as e:  # pylint: disable=broad-exception-caught
            with contextlib.suppress(Exception):
                await ws.close()
            raise UplinkOpenError(f"setup_failed: {type(e).__name__}: {e}") from e

        if self._closing:
            # close() raced the connect; release the socket we just got
            with contextlib.suppress(Exception):
                await ws.close()
            raise UplinkOpenError("closed_during_open")

        self._ws = ws
        self._recv_task = asyncio.create_task(self._recv_loop())
        self._send_task = asyncio.create_task(self._send_loop())

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "UPLINK_CONNECTED",
            "call_id": self._call_id,
            "model": self._model,
        })

    def send(self, frame: EncodedFrame) -> bool:
        """
        Enqueue one frame for transmission.

        Returns:
            True if enqueued
            False if discarded (channel not open, or queue full)
        """
        if not self.is_connected:
            return False

        try:
            self._outgoing.put_nowait(frame)
        except asyncio.QueueFull:
            self.frames_dropped += 1
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "UPLINK_FRAME_DROPPED",
                "call_id": self._call_id,
                "reason": "queue_full",
                "dropped_total": self.frames_dropped,
            })
            return False
        return True

    async def close(self) -> None:
        """Idempotent local close. Pending outgoing frames are discarded."""
        if self._closing:
            return
        self._closing = True

        current = asyncio.current_task()
        for task in (self._send_task, self._recv_task):
            if task is None or task is current or task.done():
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        ws = self._ws
        self._ws = None
        if ws is not None:
            try:
                await ws.close()
            except Exception as e:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "UPLINK_CLOSE_ERROR",
                    "call_id": self._call_id,
                    "error": f"{type(e).__name__}: {e}",
                })

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "UPLINK_CLOSED",
            "call_id": self._call_id,
            "frames_sent": self.frames_sent,
            "frames_dropped": self.frames_dropped,
        })

    # ------------------------------------------------------------------
    # Background loops
    # ------------------------------------------------------------------

    def _build_url(self) -> str:
        if not self._api_key:
            return self._url
        return f"{self._url}?{urlencode({'key': self._api_key})}"

    async def _emit(self, event: UplinkEvent) -> None:
        if self._closing:
            return
        await self._emit_event(event)

    async def _recv_loop(self) -> None:
        ws = self._ws
        if ws is None:
            return

        try:
            async for raw in ws:
                try:
                    events = parse_server_message(raw)
                except ProtocolError as e:
                    log_event({
                        "ts_ms": _now_ms(),
                        "event_type": "UPLINK_MESSAGE_MALFORMED",
                        "call_id": self._call_id,
                        "error": str(e),
                    })
                    continue

                for event in events:
                    await self._emit(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            await self._emit(
                UplinkError(
                    event_type=UplinkEventType.ERROR,
                    ts_ms=_now_ms(),
                    reason=f"recv_failed: {type(e).__name__}: {e}",
                )
            )
            return

        reason = getattr(ws, "close_reason", None) or "remote_closed"
        await self._emit(
            Closed(event_type=UplinkEventType.CLOSED, ts_ms=_now_ms(), reason=reason)
        )

    async def _send_loop(self) -> None:
        while True:
            frame = await self._outgoing.get()
            ws = self._ws
            if ws is None:
                return
            try:
                await ws.send(dumps(build_audio_message(frame)))
            except asyncio.CancelledError:
                raise
            except Exception as e:  # pylint: disable=broad-exception-caught
                await self._emit(
                    UplinkError(
                        event_type=UplinkEventType.ERROR,
                        ts_ms=_now_ms(),
                        reason=f"send_failed: {type(e).__name__}: {e}",
                    )
                )
                return
            self.frames_sent += 1
