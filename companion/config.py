"""
Application configuration.

Responsibilities:
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No audio or protocol constants (see constants.py)
- No runtime mutation
- No validation of credentials (a missing key fails at the first network call)
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    CHAT_BASE_URL_DEFAULT,
    CHAT_MODEL_DEFAULT,
    LIVE_API_URL,
    LIVE_MODEL_DEFAULT,
    LIVE_VOICE_DEFAULT,
)


def _optional_int(raw: str | None) -> int | None:
    if raw is None or raw.strip() == "":
        return None
    return int(raw)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at startup by the UI shell and passed downward to
    the chat companion and the voice call factory.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    enable_json_logs: bool = True

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    api_key: str = ""

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    chat_model: str = CHAT_MODEL_DEFAULT
    chat_base_url: str = CHAT_BASE_URL_DEFAULT

    # ------------------------------------------------------------------
    # Live voice
    # ------------------------------------------------------------------

    live_model: str = LIVE_MODEL_DEFAULT
    live_voice: str = LIVE_VOICE_DEFAULT
    live_url: str = LIVE_API_URL

    # ------------------------------------------------------------------
    # Host audio (None = system default device)
    # ------------------------------------------------------------------

    audio_input_device: int | None = None
    audio_output_device: int | None = None

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        An absent API key yields an empty string rather than an error.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",

            api_key=os.environ.get("API_KEY") or os.environ.get("GEMINI_API_KEY", ""),

            chat_model=os.environ.get("CHAT_MODEL", CHAT_MODEL_DEFAULT),
            chat_base_url=os.environ.get("CHAT_BASE_URL", CHAT_BASE_URL_DEFAULT),

            live_model=os.environ.get("LIVE_MODEL", LIVE_MODEL_DEFAULT),
            live_voice=os.environ.get("LIVE_VOICE", LIVE_VOICE_DEFAULT),
            live_url=os.environ.get("LIVE_URL", LIVE_API_URL),

            audio_input_device=_optional_int(os.environ.get("AUDIO_INPUT_DEVICE")),
            audio_output_device=_optional_int(os.environ.get("AUDIO_OUTPUT_DEVICE")),
        )
