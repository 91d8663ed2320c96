"""
Chat collaborator.

Design notes:
- One chat-completions request per user message. No streaming, no retry.
- The collaborator never raises to the UI: an empty reply and any failure
  are replaced with fixed fallback strings.
- The vendor client is created on first use, so a missing API key only
  surfaces (as the error fallback) when a message is actually sent.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from openai import AsyncOpenAI

from chat.history import ChatHistory, build_messages
from config import AppConfig
from constants import (
    CHAT_EMPTY_RESPONSE_FALLBACK,
    CHAT_ERROR_FALLBACK,
    CHAT_TEMPERATURE,
    CHAT_TOP_P,
)
from observability.logger import log_event
from observability.metrics import timed
from prompts import COMPANION_SYSTEM_PROMPT, PROMPT_VERSION


def _now_ms() -> int:
    return int(time.time() * 1000)


def build_chat_client(config: AppConfig) -> AsyncOpenAI:
    """OpenAI-compatible async client pointed at the configured endpoint."""
    return AsyncOpenAI(
        api_key=config.api_key,
        base_url=config.chat_base_url,
    )


class ChatCompanion:
    """
    Stateless request wrapper around an OpenAI-compatible client.

    The caller owns the history; this class only reads it.
    """

    def __init__(
        self,
        *,
        model: str,
        client: Any | None = None,
        client_factory: Callable[[], Any] | None = None,
        system_prompt: str = COMPANION_SYSTEM_PROMPT,
    ) -> None:
        if client is not None:
            self._client_factory: Callable[[], Any] = lambda: client
        elif client_factory is not None:
            self._client_factory = client_factory
        else:
            raise ValueError("either client or client_factory is required")
        self._client: Any | None = None
        self._model = model
        self._system_prompt = system_prompt

    async def get_response(self, history: ChatHistory, message: str) -> str:
        """
        Ask for one reply to `message` given the prior `history`.

        Returns the reply text, or a fallback string. Never raises
        (cancellation excepted).
        """
        messages = build_messages(
            system_prompt=self._system_prompt,
            history=history,
            user_text=message,
        )

        try:
            with timed("chat_response_ms", details={"model": self._model}) as span:
                completion = await self._get_client().chat.completions.create(
                    model=self._model,
                    messages=messages,
                    temperature=CHAT_TEMPERATURE,
                    top_p=CHAT_TOP_P,
                )
                text = self._extract_text(completion)
                if not text:
                    span.status = "empty"
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CHAT_REQUEST_FAILED",
                "model": self._model,
                "prompt_version": PROMPT_VERSION,
                "error": f"{type(e).__name__}: {e}",
            })
            return CHAT_ERROR_FALLBACK

        if not text:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CHAT_EMPTY_RESPONSE",
                "model": self._model,
            })
            return CHAT_EMPTY_RESPONSE_FALLBACK

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CHAT_RESPONSE",
            "model": self._model,
            "prompt_version": PROMPT_VERSION,
            "history_len": len(history),
            "char_count": len(text),
        })
        return text

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    @staticmethod
    def _extract_text(completion: Any) -> str:
        choices = getattr(completion, "choices", None) or []
        if not choices:
            return ""
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if not isinstance(content, str):
            return ""
        return content


class ChatConversation:
    """One chat screen's worth of history plus the collaborator it talks to."""

    def __init__(self, companion: ChatCompanion, history: ChatHistory | None = None) -> None:
        self._companion = companion
        self._history = history if history is not None else ChatHistory()

    @property
    def history(self) -> ChatHistory:
        return self._history

    async def send(self, message: str) -> str:
        """
        Append the user message, request a reply against the history as it
        was before this message, append the reply, return it.
        """
        prior = self._history.snapshot()
        self._history.add_user_message(message)
        reply = await self._companion.get_response(prior, message)
        self._history.add_model_message(reply)
        return reply


def create_chat_conversation(config: AppConfig) -> ChatConversation:
    companion = ChatCompanion(
        model=config.chat_model,
        client_factory=lambda: build_chat_client(config),
    )
    return ChatConversation(companion)
