"""Tests for LLM client module (F1)."""

from unittest.mock import MagicMock, patch

import pytest

from aitutor.llm.client import (
    LLMClient,
    LLMConfig,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    LLMResponse,
    LLMResponseError,
    Message,
    call_with_retry,
    is_retryable_error,
)


class FakeStatusError(Exception):
    """Stand-in for an SDK error carrying an HTTP status."""

    def __init__(self, status_code: int, message: str = "error"):
        super().__init__(message)
        self.status_code = status_code


def _completion(content: str) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.model = "test-model"
    response.usage.prompt_tokens = 10
    response.usage.completion_tokens = 20
    response.usage.total_tokens = 30
    return response


@pytest.fixture
def mock_openai_client():
    """Create a mock OpenAI client."""
    with patch("aitutor.llm.client.OpenAI") as mock:
        mock_instance = MagicMock()
        mock.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def no_sleep():
    with patch("aitutor.llm.client.time.sleep") as sleep:
        yield sleep


class TestLLMConfig:
    """Tests for LLMConfig dataclass."""

    def test_default_config(self):
        config = LLMConfig()

        assert config.provider == "gemini"
        assert config.model == "gemini-2.0-flash"
        assert config.max_retries == 1
        assert config.retry_delay == 2.0

    def test_from_app_config_default_provider(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")

        config = LLMConfig.from_app_config()

        assert config.provider == "gemini"
        assert config.base_url == "https://generativelanguage.googleapis.com/v1beta/openai/"
        assert config.api_key == "g-key"
        assert config.timeout == 60

    def test_from_app_config_provider_and_model(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        config = LLMConfig.from_app_config(provider="groq", model="custom")

        assert config.provider == "groq"
        assert config.base_url == "https://api.groq.com/openai/v1"
        assert config.model == "custom"

    def test_from_app_config_unknown_provider(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        config = LLMConfig.from_app_config(provider="mystery")

        assert config.provider == "mystery"
        assert config.model == "default"


class TestLLMResponse:
    """Tests for LLMResponse dataclass."""

    def test_response_properties(self):
        response = LLMResponse(
            content="Test content",
            model="gemini-2.0-flash",
            provider="gemini",
            usage={"prompt_tokens": 1, "completion_tokens": 2, "total_tokens": 3},
        )

        assert response.prompt_tokens == 1
        assert response.completion_tokens == 2
        assert response.total_tokens == 3

    def test_response_empty_usage(self):
        response = LLMResponse(content="x", model="m", provider="groq")
        assert response.total_tokens == 0


class TestRetry:
    """Tests for rate-limit retry."""

    def test_retryable_status_codes(self):
        assert is_retryable_error(FakeStatusError(429))
        assert is_retryable_error(FakeStatusError(503))
        assert not is_retryable_error(FakeStatusError(400))

    def test_retryable_from_message(self):
        assert is_retryable_error(Exception("Error code: 429 - quota exceeded"))
        assert not is_retryable_error(Exception("bad request"))

    def test_success_first_try(self, no_sleep):
        fn = MagicMock(return_value="ok")

        assert call_with_retry(fn, retries=1, delay=2.0) == "ok"
        fn.assert_called_once()
        no_sleep.assert_not_called()

    def test_retries_once_then_succeeds(self, no_sleep):
        fn = MagicMock(side_effect=[FakeStatusError(429), "ok"])

        assert call_with_retry(fn, retries=1, delay=2.0) == "ok"
        assert fn.call_count == 2
        no_sleep.assert_called_once_with(2.0)

    def test_gives_up_after_retries(self, no_sleep):
        fn = MagicMock(side_effect=FakeStatusError(503))

        with pytest.raises(FakeStatusError):
            call_with_retry(fn, retries=1, delay=2.0)
        assert fn.call_count == 2

    def test_delay_doubles(self, no_sleep):
        fn = MagicMock(side_effect=[FakeStatusError(429), FakeStatusError(429), "ok"])

        assert call_with_retry(fn, retries=2, delay=1.0) == "ok"
        assert [c.args[0] for c in no_sleep.call_args_list] == [1.0, 2.0]

    def test_other_errors_not_retried(self, no_sleep):
        fn = MagicMock(side_effect=FakeStatusError(400, "bad request"))

        with pytest.raises(FakeStatusError):
            call_with_retry(fn, retries=3, delay=1.0)
        fn.assert_called_once()
        no_sleep.assert_not_called()


class TestLLMClientMocked:
    """Tests for LLMClient using mocks (no real API calls)."""

    def test_sdk_retries_disabled(self):
        with patch("aitutor.llm.client.OpenAI") as mock:
            LLMClient(config=LLMConfig(api_key="k", base_url="https://example.test/v1"))

        kwargs = mock.call_args.kwargs
        assert kwargs["max_retries"] == 0
        assert kwargs["base_url"] == "https://example.test/v1"
        assert kwargs["api_key"] == "k"

    def test_model_override(self, mock_openai_client):
        client = LLMClient(config=LLMConfig(), model="custom-model")
        assert client.config.model == "custom-model"

    def test_chat_success(self, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _completion("Hello!")
        client = LLMClient(config=LLMConfig())

        response = client.chat([Message(role="user", content="Hi")])

        assert response.content == "Hello!"
        assert response.provider == "gemini"
        assert response.total_tokens == 30
        call = mock_openai_client.chat.completions.create.call_args.kwargs
        assert call["messages"] == [{"role": "user", "content": "Hi"}]
        assert "response_format" not in call

    def test_chat_json_mode_when_supported(self, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _completion("{}")
        client = LLMClient(config=LLMConfig(provider="groq"))

        client.chat([Message(role="user", content="Hi")], json_mode=True)

        call = mock_openai_client.chat.completions.create.call_args.kwargs
        assert call["response_format"] == {"type": "json_object"}

    def test_chat_json_mode_skipped_for_cerebras(self, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _completion("{}")
        client = LLMClient(config=LLMConfig(provider="cerebras"))

        client.chat([Message(role="user", content="Hi")], json_mode=True)

        call = mock_openai_client.chat.completions.create.call_args.kwargs
        assert "response_format" not in call

    def test_chat_empty_response(self, mock_openai_client):
        response = MagicMock()
        response.choices = []
        mock_openai_client.chat.completions.create.return_value = response
        client = LLMClient(config=LLMConfig())

        with pytest.raises(LLMResponseError, match="Empty response"):
            client.chat([Message(role="user", content="Hi")])

    def test_chat_connection_error(self, mock_openai_client):
        mock_openai_client.chat.completions.create.side_effect = Exception("Connection refused")
        client = LLMClient(config=LLMConfig())

        with pytest.raises(LLMConnectionError):
            client.chat([Message(role="user", content="Hi")])

    def test_chat_rate_limited_retries_then_fails(self, mock_openai_client, no_sleep):
        mock_openai_client.chat.completions.create.side_effect = FakeStatusError(429, "429 slow down")
        client = LLMClient(config=LLMConfig(max_retries=1, retry_delay=2.0))

        with pytest.raises(LLMRateLimitError):
            client.chat([Message(role="user", content="Hi")])

        assert mock_openai_client.chat.completions.create.call_count == 2
        no_sleep.assert_called_once_with(2.0)

    def test_chat_rate_limited_then_recovers(self, mock_openai_client, no_sleep):
        mock_openai_client.chat.completions.create.side_effect = [
            FakeStatusError(503, "overloaded"),
            _completion("Recovered"),
        ]
        client = LLMClient(config=LLMConfig())

        response = client.chat([Message(role="user", content="Hi")])

        assert response.content == "Recovered"

    def test_chat_other_error(self, mock_openai_client):
        mock_openai_client.chat.completions.create.side_effect = FakeStatusError(400, "invalid model")
        client = LLMClient(config=LLMConfig())

        with pytest.raises(LLMError, match="invalid model"):
            client.chat([Message(role="user", content="Hi")])

    def test_chat_json_parses_fenced_block(self, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _completion(
            'Sure!\n```json\n{"cards": []}\n```'
        )
        client = LLMClient(config=LLMConfig())

        assert client.chat_json([Message(role="user", content="JSON")]) == {"cards": []}

    def test_chat_json_strips_think(self, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _completion(
            '<think>{"no": 1}</think>{"yes": 2}'
        )
        client = LLMClient(config=LLMConfig())

        assert client.chat_json([Message(role="user", content="JSON")]) == {"yes": 2}

    def test_chat_json_repair_round_trip(self, mock_openai_client):
        mock_openai_client.chat.completions.create.side_effect = [
            _completion("not json at all"),
            _completion('{"fixed": true}'),
        ]
        client = LLMClient(config=LLMConfig())

        assert client.chat_json([Message(role="user", content="JSON")]) == {"fixed": True}
        assert mock_openai_client.chat.completions.create.call_count == 2

    def test_chat_json_invalid(self, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _completion("still not json")
        client = LLMClient(config=LLMConfig())

        with pytest.raises(LLMResponseError):
            client.chat_json([Message(role="user", content="JSON")])

    def test_simple_json_sends_system_and_user(self, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _completion('{"a": 1}')
        client = LLMClient(config=LLMConfig())

        assert client.simple_json("system text", "user text") == {"a": 1}
        call = mock_openai_client.chat.completions.create.call_args.kwargs
        assert [m["role"] for m in call["messages"]] == ["system", "user"]

    def test_simple_chat_returns_text(self, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _completion("Mitochondria.")
        client = LLMClient(config=LLMConfig())

        assert client.simple_chat("Be brief.", "Powerhouse of the cell?", max_tokens=50) == "Mitochondria."
        call = mock_openai_client.chat.completions.create.call_args.kwargs
        assert call["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Powerhouse of the cell?"},
        ]
        assert call["max_tokens"] == 50

    def test_chat_stream_yields_chunks(self, mock_openai_client):
        chunks = []
        for text in ["Hel", "lo", None]:
            chunk = MagicMock()
            chunk.choices = [MagicMock()]
            chunk.choices[0].delta.content = text
            chunks.append(chunk)
        mock_openai_client.chat.completions.create.return_value = iter(chunks)
        client = LLMClient(config=LLMConfig())

        assert list(client.chat_stream([Message(role="user", content="Hi")])) == ["Hel", "lo"]

    def test_is_available(self, mock_openai_client):
        client = LLMClient(config=LLMConfig())
        assert client.is_available() is True

        mock_openai_client.models.list.side_effect = Exception("down")
        assert client.is_available() is False
