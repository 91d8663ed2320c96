"""
Wires a VoiceCallSession to the host audio devices and the live endpoint.

Tests build VoiceCallSession directly with fakes; this module is the only
place that knows about sounddevice and websockets together.
"""

from __future__ import annotations

from config import AppConfig
from playback.context import PlaybackContext
from prompts import VOICE_SYSTEM_PROMPT
from session.voice_call import (
    EmitUplinkEvent,
    StatusListener,
    UplinkChannelProtocol,
    VoiceCallSession,
    new_call_id,
)
from uplink.channel import UplinkChannel


def create_voice_call(
    config: AppConfig,
    on_status: StatusListener | None = None,
    *,
    system_instruction: str = VOICE_SYSTEM_PROMPT,
) -> VoiceCallSession:
    """Build (but do not start) one AI voice call."""
    # sounddevice loads PortAudio at import time
    from audio.devices import SoundDeviceMicrophone  # pylint: disable=import-outside-toplevel
    from playback.device import SoundDevicePlaybackContext  # pylint: disable=import-outside-toplevel

    call_id = new_call_id()

    def playback_factory() -> PlaybackContext:
        return SoundDevicePlaybackContext(device=config.audio_output_device)

    def uplink_factory(emit: EmitUplinkEvent) -> UplinkChannelProtocol:
        return UplinkChannel(
            emit_event=emit,
            api_key=config.api_key,
            model=config.live_model,
            voice=config.live_voice,
            system_instruction=system_instruction,
            url=config.live_url,
            call_id=call_id,
        )

    return VoiceCallSession(
        microphone=SoundDeviceMicrophone(device=config.audio_input_device),
        playback_factory=playback_factory,
        uplink_factory=uplink_factory,
        on_status=on_status,
        call_id=call_id,
    )
