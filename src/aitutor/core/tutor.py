"""Tutor chat.

Turns a client-side conversation history plus a new message into an
LLM chat request and returns the tutor's reply.

History entries use the client's shape::

    {"role": "user" | "model", "parts": [{"text": "..."}]}
"""

from __future__ import annotations

from typing import Any

import structlog

from aitutor.core.models import LearningStyle
from aitutor.llm.client import LLMClient, Message
from aitutor.prompts.registry import get_prompt
from aitutor.utils.text_utils import strip_think

logger = structlog.get_logger(__name__)

FALLBACK_REPLY = "I'm having a little trouble thinking right now."


class TutorInputError(ValueError):
    """Chat request is malformed (empty message, bad history entry)."""

    pass


def _history_entry_text(entry: dict[str, Any]) -> str:
    """Text of the first part of a history entry."""
    parts = entry.get("parts") or []
    if parts and isinstance(parts[0], dict):
        return str(parts[0].get("text", ""))
    # Records saved by this package carry "text" directly
    return str(entry.get("text", ""))


def build_chat_messages(
    history: list[dict[str, Any]],
    message: str,
    learning_style: LearningStyle = LearningStyle.VISUAL,
) -> list[Message]:
    """Build the LLM message list for a tutor turn.

    Role "model" maps to assistant; any other role is treated as user.
    """
    if not message or not message.strip():
        raise TutorInputError("Message must not be empty")

    messages = [
        Message(
            role="system",
            content=get_prompt("tutor/system", learning_style=learning_style.value),
        )
    ]

    for entry in history:
        if not isinstance(entry, dict):
            raise TutorInputError("History entries must be objects")
        role = "assistant" if entry.get("role") == "model" else "user"
        messages.append(Message(role=role, content=_history_entry_text(entry)))

    messages.append(Message(role="user", content=message))
    return messages


def generate_tutor_response(
    history: list[dict[str, Any]],
    message: str,
    client: LLMClient,
    learning_style: LearningStyle = LearningStyle.VISUAL,
) -> str:
    """Get the tutor's reply to a message given the prior conversation.

    Args:
        history: Prior turns in client shape
        message: New user message
        client: Configured LLM client
        learning_style: Learner preference woven into the system prompt

    Returns:
        Reply text (think tags stripped)

    Raises:
        TutorInputError: If the message is empty
        LLMError: If the provider call fails
    """
    messages = build_chat_messages(history, message, learning_style)
    response = client.chat(messages)
    text = strip_think(response.content)

    logger.info(
        "tutor_response_generated",
        history_turns=len(history),
        provider=response.provider,
        tokens=response.total_tokens,
        latency_ms=response.latency_ms,
    )

    return text or FALLBACK_REPLY
