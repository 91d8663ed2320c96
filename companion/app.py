"""
Client app factory.

Responsibilities:
- Load configuration (.env, then process environment) and apply it to logging
- Create the shared chat conversation and the screen router
- Start and end AI voice calls in step with navigation

The UI shell owns one CompanionApp for its lifetime.
"""

from __future__ import annotations

import time

from dotenv import load_dotenv

from chat.companion import ChatConversation, create_chat_conversation
from config import AppConfig
from navigation.screens import AppContext, NavAction, Screen, ScreenListener
from observability import logger
from observability.logger import log_event
from session import factory
from session.voice_call import StatusListener, VoiceCallSession


class CompanionApp:
    def __init__(
        self,
        config: AppConfig,
        *,
        on_screen_change: ScreenListener | None = None,
    ) -> None:
        self.config = config
        self.navigation = AppContext(on_change=on_screen_change)
        self.chat: ChatConversation = create_chat_conversation(config)
        self._call: VoiceCallSession | None = None

    @property
    def call(self) -> VoiceCallSession | None:
        return self._call

    async def start_ai_call(self, on_status: StatusListener | None = None) -> VoiceCallSession | None:
        """
        Navigate to the AI call screen and start a call.

        Returns None when the current screen does not offer an AI call.
        """
        if self.navigation.dispatch(NavAction.START_AI_CALL) is not Screen.AI_CALL:
            return None

        if self._call is not None and not self._call.is_ended:
            await self._call.hang_up()

        self._call = factory.create_voice_call(self.config, on_status)
        await self._call.start()
        return self._call

    async def end_call(self) -> None:
        """Hang up (if a call is live) and go back to call selection."""
        if self._call is not None:
            await self._call.hang_up()
        self.navigation.dispatch(NavAction.END_CALL)


def create_app(
    config: AppConfig | None = None,
    *,
    on_screen_change: ScreenListener | None = None,
) -> CompanionApp:
    if config is None:
        load_dotenv()
        config = AppConfig.load_from_env()
    logger.configure(enabled=config.enable_json_logs)

    log_event({
        "ts_ms": int(time.time() * 1000),
        "event_type": "APP_CREATED",
        "env": config.env,
        "chat_model": config.chat_model,
        "live_model": config.live_model,
        "api_key_present": bool(config.api_key),
    })

    return CompanionApp(config, on_screen_change=on_screen_change)
