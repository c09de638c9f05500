"""Flashcard generation module.

Responsibilities:
- Generate study flashcards for a topic using the LLM
- Generate the back side for a card whose front the learner wrote
- Normalize LLM output into ``{"front", "back"}`` pairs

Output structure (JSON):
- {"cards": [{"front": str, "back": str}, ...]}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from aitutor.core.models import Flashcard
from aitutor.llm.client import LLMClient, Message
from aitutor.prompts.registry import get_prompt
from aitutor.utils.text_utils import now_ms, strip_think

logger = structlog.get_logger(__name__)

DEFAULT_CARD_COUNT = 5
MAX_CARD_COUNT = 50


@dataclass
class GeneratedCard:
    """A card as returned by the LLM, before it gets an id."""

    front: str
    back: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {"front": self.front, "back": self.back}


class FlashcardGenerationError(Exception):
    """Error during flashcard generation."""

    pass


def _parse_cards_from_llm(raw_data: dict[str, Any], count: int) -> list[GeneratedCard]:
    """Parse cards from LLM response, dropping incomplete entries."""
    raw_cards = raw_data.get("cards")
    if not isinstance(raw_cards, list):
        raise FlashcardGenerationError("LLM response has no 'cards' array")

    cards: list[GeneratedCard] = []
    for i, item in enumerate(raw_cards):
        if not isinstance(item, dict):
            logger.warning("flashcard_skipped_not_object", index=i)
            continue

        front = str(item.get("front") or "").strip()
        back = str(item.get("back") or "").strip()
        if not front or not back:
            logger.warning("flashcard_skipped_incomplete", index=i)
            continue

        cards.append(GeneratedCard(front=front, back=back))

    return cards[:count]


def generate_flashcards(
    topic: str,
    client: LLMClient,
    count: int = DEFAULT_CARD_COUNT,
) -> list[GeneratedCard]:
    """Generate study flashcards about a topic.

    Args:
        topic: Subject of the cards
        client: Configured LLM client
        count: Number of cards wanted (1-50)

    Returns:
        At most ``count`` cards, each with a non-empty front and back

    Raises:
        ValueError: If topic is empty or count is out of range
        FlashcardGenerationError: If the LLM returns no usable cards
        LLMError: If the provider call fails
    """
    topic = topic.strip()
    if not topic:
        raise ValueError("Topic must not be empty")
    if count < 1 or count > MAX_CARD_COUNT:
        raise ValueError(f"count must be between 1 and {MAX_CARD_COUNT}")

    raw_result = client.simple_json(
        system_prompt=get_prompt("flashcards/system"),
        user_message=get_prompt("flashcards/generate", topic=topic, count=count),
        temperature=0.5,
    )
    cards = _parse_cards_from_llm(raw_result, count)

    if not cards:
        raise FlashcardGenerationError(f"No flashcards generated for '{topic}'")

    logger.info(
        "flashcards_generated",
        topic=topic,
        requested=count,
        count=len(cards),
        provider=client.config.provider,
    )
    return cards


def to_flashcards(cards: list[GeneratedCard]) -> list[Flashcard]:
    """Give generated cards ids (``fc-<ms>-<index>``) and mark them unmastered."""
    stamp = now_ms()
    return [
        Flashcard(id=f"fc-{stamp}-{i}", front=card.front, back=card.back, mastered=False)
        for i, card in enumerate(cards)
    ]


def generate_card_answer(front: str, client: LLMClient) -> str:
    """Write a short answer (under 30 words) for a flashcard front.

    Raises:
        ValueError: If front is empty
        LLMError: If the provider call fails
    """
    front = front.strip()
    if not front:
        raise ValueError("Card front must not be empty")

    response = client.chat(
        [Message(role="user", content=get_prompt("flashcards/card_answer", front=front))],
        max_tokens=200,
    )
    answer = strip_think(response.content)

    logger.info("card_answer_generated", front=front[:40], chars=len(answer))
    return answer
