"""Fixtures for F5 tests - Web API."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from aitutor.llm.client import LLMResponse
from aitutor.web.api import create_app
from aitutor.web.dependencies import get_llm_client


@pytest.fixture
def mock_llm_client():
    """LLM client double shared by the generation routes."""
    client = MagicMock()
    client.config = MagicMock()
    client.config.provider = "gemini"
    client.config.model = "test-model"
    client.chat.return_value = LLMResponse(
        content="Great question! Photosynthesis turns light into sugar.",
        model="test-model",
        provider="gemini",
    )
    client.simple_json.return_value = {
        "cards": [
            {"front": "Q1", "back": "A1"},
            {"front": "Q2", "back": "A2"},
        ]
    }
    return client


@pytest.fixture
def client(tmp_path, monkeypatch, mock_llm_client):
    """Create test client with isolated state and no real LLM."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "data" / "state").mkdir(parents=True)

    app = create_app()
    app.dependency_overrides[get_llm_client] = lambda: mock_llm_client
    return TestClient(app)


@pytest.fixture
def user_id(client) -> str:
    response = client.post(
        "/api/users",
        json={"email": "ana@example.com", "firstName": "Ana", "lastName": "Diaz"},
    )
    assert response.status_code == 201
    return response.json()["id"]
