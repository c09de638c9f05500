"""Tests for stored chat session endpoints (F5)."""

import pytest

from aitutor.llm.client import LLMError


@pytest.fixture
def chats_url(user_id) -> str:
    return f"/api/users/{user_id}/chats"


@pytest.fixture
def session_id(client, chats_url) -> str:
    response = client.post(chats_url)
    assert response.status_code == 201
    return response.json()["id"]


class TestSessions:
    """Tests for creating, listing and deleting sessions."""

    def test_new_session_has_welcome(self, client, chats_url):
        response = client.post(chats_url)

        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "New Chat"
        assert len(data["messages"]) == 1
        assert data["messages"][0]["role"] == "model"
        assert data["messages"][0]["text"].startswith("Hi there! I'm your AI Tutor.")

    def test_list(self, client, chats_url, session_id):
        data = client.get(chats_url).json()

        assert data["count"] == 1
        assert data["sessions"][0]["id"] == session_id

    def test_get(self, client, chats_url, session_id):
        response = client.get(f"{chats_url}/{session_id}")

        assert response.status_code == 200
        assert response.json()["id"] == session_id

    def test_get_missing(self, client, chats_url):
        assert client.get(f"{chats_url}/nope").status_code == 404

    def test_delete(self, client, chats_url, session_id):
        assert client.delete(f"{chats_url}/{session_id}").status_code == 204
        assert client.get(chats_url).json()["count"] == 0
        assert client.delete(f"{chats_url}/{session_id}").status_code == 404


class TestMessages:
    """Tests for POST /{session_id}/messages."""

    def test_send_message(self, client, chats_url, session_id):
        response = client.post(
            f"{chats_url}/{session_id}/messages",
            json={"text": "How do plants eat?"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["reply"] == "Great question! Photosynthesis turns light into sugar."
        assert data["remaining_messages"] == 9
        session = data["session"]
        assert session["title"] == "How do plants eat?"
        assert [m["role"] for m in session["messages"]] == ["model", "user", "model"]

        stored = client.get(f"{chats_url}/{session_id}").json()
        assert len(stored["messages"]) == 3

    def test_history_sent_to_tutor(self, client, chats_url, session_id, mock_llm_client):
        client.post(f"{chats_url}/{session_id}/messages", json={"text": "Hello"})

        messages = mock_llm_client.chat.call_args.args[0]
        assert [m.role for m in messages] == ["system", "assistant", "user"]
        assert messages[-1].content == "Hello"

    def test_long_first_message_truncates_title(self, client, chats_url, session_id):
        text = "Can you explain the whole Krebs cycle step by step?"

        data = client.post(f"{chats_url}/{session_id}/messages", json={"text": text}).json()

        assert data["session"]["title"] == text[:30] + "..."

    def test_audio_flag_stored(self, client, chats_url, session_id):
        data = client.post(
            f"{chats_url}/{session_id}/messages",
            json={"text": "Spoken question", "isAudio": True},
        ).json()

        user_message = data["session"]["messages"][1]
        assert user_message["isAudio"] is True

    def test_limit_reached(self, client, chats_url, session_id, mock_llm_client):
        for _ in range(10):
            response = client.post(f"{chats_url}/{session_id}/messages", json={"text": "Hi"})
            assert response.status_code == 200

        response = client.post(f"{chats_url}/{session_id}/messages", json={"text": "Hi"})

        assert response.status_code == 429
        assert response.json()["error"] == "Daily Message Limit Reached"
        assert len(client.get(f"{chats_url}/{session_id}").json()["messages"]) == 21

    def test_failure_stores_nothing(self, client, chats_url, session_id, mock_llm_client, user_id):
        mock_llm_client.chat.side_effect = LLMError("down")

        response = client.post(f"{chats_url}/{session_id}/messages", json={"text": "Hi"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to generate response", "details": "down"}
        assert len(client.get(f"{chats_url}/{session_id}").json()["messages"]) == 1
        assert client.get(f"/api/users/{user_id}/usage").json()["daily_messages"] == 0

    def test_blank_message(self, client, chats_url, session_id):
        response = client.post(f"{chats_url}/{session_id}/messages", json={"text": "   "})
        assert response.status_code == 400

    def test_missing_session(self, client, chats_url):
        response = client.post(f"{chats_url}/nope/messages", json={"text": "Hi"})
        assert response.status_code == 404

    def test_unknown_user(self, client):
        response = client.post("/api/users/user-nope/chats/abc/messages", json={"text": "Hi"})
        assert response.status_code == 404

    def test_unknown_user_creates_no_files(self, client, tmp_path):
        assert client.get("/api/users/nobody/chats").status_code == 404
        assert client.post("/api/users/nobody/chats").status_code == 404

        assert not (tmp_path / "data" / "state" / "users" / "nobody").exists()
