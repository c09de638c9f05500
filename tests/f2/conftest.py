"""Fixtures for F2 tests - generation."""

from typing import Any
from unittest.mock import MagicMock

import pytest

from aitutor.llm.client import LLMResponse


@pytest.fixture
def mock_cards_response() -> dict[str, Any]:
    return {
        "cards": [
            {"front": "What is photosynthesis?", "back": "Light turned into chemical energy"},
            {"front": "Where does it happen?", "back": "In the chloroplasts"},
            {"front": "What gas is released?", "back": "Oxygen"},
        ]
    }


@pytest.fixture
def mock_quiz_response() -> dict[str, Any]:
    return {
        "questions": [
            {
                "question": "When did WWII end?",
                "options": ["1918", "1945", "1939", "1950"],
                "correctIndex": 1,
                "explanation": "Japan surrendered in 1945.",
            },
            {
                "question": "Which city was bombed first?",
                "options": ["Hiroshima", "Nagasaki"],
                "correctIndex": "0",
                "explanation": "",
            },
        ]
    }


@pytest.fixture
def mock_llm_client():
    """Mock LLM client that returns fixed responses without calling a real LLM."""
    client = MagicMock()
    client.config = MagicMock()
    client.config.provider = "gemini"
    client.config.model = "test-model"

    client.chat.return_value = LLMResponse(
        content="<think>let me see</think>Mitochondria make ATP.",
        model="test-model",
        provider="gemini",
    )
    return client
