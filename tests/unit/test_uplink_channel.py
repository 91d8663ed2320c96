# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import json
from typing import Any

import pytest

from audio.frames import EncodedFrame
from uplink.channel import UplinkChannel, UplinkOpenError
from uplink.events import AudioChunk, Closed, Opened, UplinkError, UplinkEvent


class FakeWebSocket:
    """In-memory websocket: feed() server messages, end() to close cleanly."""

    def __init__(self, *, fail_send_after: int | None = None) -> None:
        self.sent: list[dict[str, Any]] = []
        self.close_calls = 0
        self.close_reason: str | None = None
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()
        self._fail_send_after = fail_send_after

    def feed(self, message: str) -> None:
        self._incoming.put_nowait(message)

    def end(self, reason: str | None = None) -> None:
        self.close_reason = reason
        self._incoming.put_nowait(None)

    def fail(self, exc: Exception) -> None:
        self._incoming.put_nowait(exc)

    async def send(self, message: str) -> None:
        if self._fail_send_after is not None and len(self.sent) >= self._fail_send_after:
            raise ConnectionError("socket gone")
        self.sent.append(json.loads(message))

    async def close(self) -> None:
        self.close_calls += 1

    def __aiter__(self) -> "FakeWebSocket":
        return self

    async def __anext__(self) -> str:
        item = await self._incoming.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item


def make_channel(ws: FakeWebSocket, events: list[UplinkEvent], **kwargs: Any) -> UplinkChannel:
    urls: list[str] = []

    async def fake_connect(url: str, **_: Any) -> FakeWebSocket:
        urls.append(url)
        return ws

    async def emit(event: UplinkEvent) -> None:
        events.append(event)

    channel = UplinkChannel(
        emit_event=emit,
        api_key=kwargs.pop("api_key", "k"),
        model="live-model",
        voice="Zephyr",
        url="wss://example.invalid/live",
        connect=fake_connect,
        **kwargs,
    )
    channel.test_urls = urls  # type: ignore[attr-defined]
    return channel


def frame(n: int) -> EncodedFrame:
    return EncodedFrame(data=f"{n:04d}", media_type="audio/pcm;rate=16000")


async def settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------
# Open
# ---------------------------------------------------------------------

def test_open_sends_setup_first_and_adds_key() -> None:
    async def scenario() -> None:
        ws = FakeWebSocket()
        events: list[UplinkEvent] = []
        channel = make_channel(ws, events)

        await channel.open()

        assert channel.test_urls == ["wss://example.invalid/live?key=k"]  # type: ignore[attr-defined]
        assert list(ws.sent[0].keys()) == ["setup"]
        assert channel.is_connected
        await channel.close()

    asyncio.run(scenario())


def test_open_failure_raises_open_error() -> None:
    async def scenario() -> None:
        async def refuse(url: str, **_: Any) -> Any:
            raise OSError("refused")

        async def emit(_: UplinkEvent) -> None:
            return None

        channel = UplinkChannel(
            emit_event=emit, api_key="", model="m", voice="v", connect=refuse,
        )
        with pytest.raises(UplinkOpenError):
            await channel.open()
        assert not channel.is_connected

    asyncio.run(scenario())


# ---------------------------------------------------------------------
# Receive
# ---------------------------------------------------------------------

def test_server_messages_become_events_in_order() -> None:
    async def scenario() -> None:
        ws = FakeWebSocket()
        events: list[UplinkEvent] = []
        channel = make_channel(ws, events)
        await channel.open()

        ws.feed('{"setupComplete": {}}')
        ws.feed("garbage")
        ws.feed(json.dumps({"serverContent": {"modelTurn": {"parts": [
            {"inlineData": {"data": "AAAA", "mimeType": "audio/pcm;rate=24000"}},
        ]}}}))
        ws.end("bye")
        await settle()

        assert [type(e) for e in events] == [Opened, AudioChunk, Closed]
        assert events[-1].reason == "bye"  # type: ignore[attr-defined]
        await channel.close()

    asyncio.run(scenario())


def test_receive_failure_emits_error() -> None:
    async def scenario() -> None:
        ws = FakeWebSocket()
        events: list[UplinkEvent] = []
        channel = make_channel(ws, events)
        await channel.open()

        ws.fail(ConnectionResetError("reset"))
        await settle()

        assert len(events) == 1
        assert isinstance(events[0], UplinkError)
        assert events[0].reason.startswith("recv_failed")
        await channel.close()

    asyncio.run(scenario())


# ---------------------------------------------------------------------
# Send
# ---------------------------------------------------------------------

def test_frames_are_sent_in_order() -> None:
    async def scenario() -> None:
        ws = FakeWebSocket()
        channel = make_channel(ws, [])
        await channel.open()

        for n in range(5):
            assert channel.send(frame(n)) is True
        await settle()

        sent = [m["realtimeInput"]["audio"]["data"] for m in ws.sent[1:]]
        assert sent == ["0000", "0001", "0002", "0003", "0004"]
        assert channel.frames_sent == 5
        await channel.close()

    asyncio.run(scenario())


def test_send_before_open_and_after_close_is_discarded() -> None:
    async def scenario() -> None:
        ws = FakeWebSocket()
        channel = make_channel(ws, [])

        assert channel.send(frame(0)) is False

        await channel.open()
        await channel.close()

        assert channel.send(frame(1)) is False
        assert len(ws.sent) == 1  # setup only

    asyncio.run(scenario())


def test_full_queue_drops_newest() -> None:
    async def scenario() -> None:
        ws = FakeWebSocket()
        channel = make_channel(ws, [], max_queued_frames=2)
        await channel.open()

        # No await between sends: the sender task cannot drain
        results = [channel.send(frame(n)) for n in range(4)]

        assert results == [True, True, False, False]
        assert channel.frames_dropped == 2
        await settle()
        sent = [m["realtimeInput"]["audio"]["data"] for m in ws.sent[1:]]
        assert sent == ["0000", "0001"]
        await channel.close()

    asyncio.run(scenario())


def test_send_failure_emits_error() -> None:
    async def scenario() -> None:
        ws = FakeWebSocket(fail_send_after=1)
        events: list[UplinkEvent] = []
        channel = make_channel(ws, events)
        await channel.open()

        channel.send(frame(0))
        await settle()

        assert len(events) == 1
        assert isinstance(events[0], UplinkError)
        assert events[0].reason.startswith("send_failed")
        await channel.close()

    asyncio.run(scenario())


# ---------------------------------------------------------------------
# Close
# ---------------------------------------------------------------------

def test_close_is_idempotent_and_silences_events() -> None:
    async def scenario() -> None:
        ws = FakeWebSocket()
        events: list[UplinkEvent] = []
        channel = make_channel(ws, events)
        await channel.open()

        await channel.close()
        await channel.close()

        ws.feed('{"setupComplete": {}}')
        await settle()

        assert ws.close_calls == 1
        assert events == []
        assert not channel.is_connected

    asyncio.run(scenario())


def test_close_from_inside_event_handler() -> None:
    async def scenario() -> None:
        ws = FakeWebSocket()
        holder: dict[str, UplinkChannel] = {}
        seen: list[UplinkEvent] = []

        async def emit(event: UplinkEvent) -> None:
            seen.append(event)
            await holder["channel"].close()

        async def fake_connect(url: str, **_: Any) -> FakeWebSocket:
            return ws

        channel = UplinkChannel(
            emit_event=emit, api_key="", model="m", voice="v", connect=fake_connect,
        )
        holder["channel"] = channel
        await channel.open()

        ws.end()
        await settle()

        assert [type(e) for e in seen] == [Closed]
        assert ws.close_calls == 1

    asyncio.run(scenario())
