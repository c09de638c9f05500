"""Fixtures for F6 tests - CLI."""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from aitutor.core.models import create_default_user
from aitutor.core.user_repository import save_user
from aitutor.llm.client import LLMResponse


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Data dir with an empty state folder, selected through the environment."""
    (tmp_path / "state").mkdir()
    monkeypatch.setenv("AITUTOR_DATA_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture
def learner(data_dir):
    """A saved free-tier learner."""
    user = create_default_user("ana@example.com", "Ana", "Diaz", user_id="user-ana", today=date.today())
    save_user(user, data_dir / "state")
    return user


@pytest.fixture
def mock_llm_client():
    client = MagicMock()
    client.config.provider = "gemini"
    client.config.model = "test-model"
    client.chat.return_value = LLMResponse(
        content="<think>short</think>ATP is the cell's energy currency.",
        model="test-model",
        provider="gemini",
    )
    client.chat_stream.side_effect = lambda messages, **kwargs: iter(
        ["Plants <thi", "nk>hmm</thi", "nk>use light."]
    )
    client.simple_json.return_value = {
        "cards": [
            {"front": "What is chlorophyll?", "back": "A green pigment"},
            {"front": "Where does photosynthesis happen?", "back": "In chloroplasts"},
        ],
        "questions": [
            {"question": "2+2?", "options": ["3", "4", "5"], "correctIndex": 1, "explanation": "Addition"},
            {"question": "3*3?", "options": ["9", "6"], "correctIndex": 0},
        ],
    }
    return client


@pytest.fixture
def patched_llm(mock_llm_client):
    """Route every CLI LLMClient construction to the mock."""
    with patch("aitutor.cli.commands.LLMClient") as MockLLMClient:
        MockLLMClient.return_value = mock_llm_client
        yield MockLLMClient
