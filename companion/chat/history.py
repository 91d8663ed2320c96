"""
Chat history.

Responsibilities:
- Store ordered user/model messages
- Provide a chat-completions representation for the chat collaborator

Non-responsibilities:
- No truncation (the full history is sent every request)
- No network calls
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Role = Literal["user", "model"]

# Chat-completions role for each stored role
_WIRE_ROLE: dict[str, str] = {
    "user": "user",
    "model": "assistant",
}


@dataclass(frozen=True)
class ChatMessage:
    """Single chat message."""
    role: Role
    text: str


class ChatHistory:
    """
    Append-only message list.

    Invariants:
    - Messages are stored in chronological order
    - Stored messages are never edited
    """

    def __init__(self, messages: list[ChatMessage] | None = None) -> None:
        self._messages: list[ChatMessage] = list(messages or [])

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def add_user_message(self, text: str) -> None:
        self._messages.append(ChatMessage(role="user", text=text))

    def add_model_message(self, text: str) -> None:
        self._messages.append(ChatMessage(role="model", text=text))

    def snapshot(self) -> ChatHistory:
        return ChatHistory(self._messages)

    def serialize(self) -> list[dict[str, str]]:
        """
        Serialize into chat-completions messages.

        Output format:
        [
          {"role": "user", "content": "..."},
          {"role": "assistant", "content": "..."},
        ]
        """
        return [
            {"role": _WIRE_ROLE[m.role], "content": m.text}
            for m in self._messages
        ]


def build_messages(
    *,
    system_prompt: str,
    history: ChatHistory,
    user_text: str,
) -> list[dict[str, str]]:
    """
    System prompt first, then prior history, then the current user text
    as a fresh user message.
    """
    messages: list[dict[str, str]] = [{"role": "system", "content": system_prompt}]
    messages.extend(history.serialize())
    messages.append({"role": "user", "content": user_text})
    return messages
