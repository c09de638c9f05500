"""LLM client for hosted providers.

Provides a unified interface for LLM interactions over the
OpenAI-compatible chat-completions API that every supported provider exposes.

Supported providers:
- gemini: Google Gemini (OpenAI-compatible endpoint)
- cerebras: Cerebras inference API
- groq: Groq API
- openai: OpenAI API

Requests that fail because the provider is rate limiting (429) or
overloaded (503) are retried with a doubling delay.
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Literal, TypeVar

import structlog
from openai import OpenAI

from aitutor.config.app_config import (
    get_default_model,
    get_provider_config,
    load_app_config,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# =============================================================================
# CONSTANTS
# =============================================================================

Provider = Literal["gemini", "cerebras", "groq", "openai"]

# Provider capabilities
# Gemini's compatibility layer and OpenAI accept response_format json_object
PROVIDER_CAPABILITIES_DEFAULTS: dict[str, dict[str, bool]] = {
    "gemini": {"supports_json_object": True},
    "cerebras": {"supports_json_object": False},
    "groq": {"supports_json_object": True},
    "openai": {"supports_json_object": True},
}

RETRYABLE_STATUS_CODES = (429, 503)

# JSON repair prompt template
JSON_REPAIR_PROMPT = """Fix the following text and return ONLY valid JSON:
<<<
{invalid_output}
>>>

Reply with the corrected JSON only, no explanations and no markdown."""

# Some models emit <think>...</think> blocks that break JSON parsing
SANITIZE_PATTERNS = [
    re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<analysis>.*?</analysis>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<reasoning>.*?</reasoning>", re.DOTALL | re.IGNORECASE),
]


def _sanitize_for_json(text: str) -> str:
    """Remove thinking/reasoning tags before JSON parsing."""
    result = text
    for pattern in SANITIZE_PATTERNS:
        result = pattern.sub("", result)
    return result.strip()


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class LLMConfig:
    """Configuration for LLM client."""

    provider: str = "gemini"
    base_url: str | None = None
    model: str = "gemini-2.0-flash"
    temperature: float = 0.7
    max_tokens: int = 4096
    timeout: int = 60
    api_key: str | None = None
    max_retries: int = 1
    retry_delay: float = 2.0
    # Capability override (from config)
    supports_json_object: bool | None = None

    @classmethod
    def from_app_config(
        cls,
        provider: str | None = None,
        model: str | None = None,
    ) -> LLMConfig:
        """Build configuration from the application config.

        Args:
            provider: Provider name (default: tutor.default_provider)
            model: Model name (default: provider's default model)
        """
        app_config = load_app_config()
        if provider is None:
            provider = app_config.tutor.default_provider

        pconfig = get_provider_config(provider)
        if pconfig is None:
            logger.warning("unknown_provider", provider=provider)
            return cls(provider=provider, model=model or "default")

        return cls(
            provider=provider,
            base_url=pconfig.base_url,
            model=model or get_default_model(provider),
            temperature=app_config.tutor.temperature,
            timeout=app_config.tutor.request_timeout,
            api_key=pconfig.get_api_key(),
            max_retries=app_config.tutor.max_retries,
            retry_delay=app_config.tutor.retry_delay_seconds,
        )


@dataclass
class Message:
    """A chat message."""

    role: Literal["system", "user", "assistant"]
    content: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for API call."""
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    """Response from LLM."""

    content: str
    model: str
    provider: str
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: int = 0

    @property
    def prompt_tokens(self) -> int:
        """Get prompt token count."""
        return self.usage.get("prompt_tokens", 0)

    @property
    def completion_tokens(self) -> int:
        """Get completion token count."""
        return self.usage.get("completion_tokens", 0)

    @property
    def total_tokens(self) -> int:
        """Get total token count."""
        return self.usage.get("total_tokens", 0)


class LLMError(Exception):
    """Error during LLM interaction."""

    pass


class LLMConnectionError(LLMError):
    """Error connecting to LLM server."""

    pass


class LLMRateLimitError(LLMError):
    """Provider kept rejecting requests with 429/503 after retrying."""

    pass


class LLMResponseError(LLMError):
    """Error in LLM response."""

    pass


# =============================================================================
# RETRY
# =============================================================================


def is_retryable_error(error: Exception) -> bool:
    """Whether an SDK error means rate limited or overloaded."""
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    if status in RETRYABLE_STATUS_CODES:
        return True
    return "429" in str(error)


def call_with_retry(
    fn: Callable[[], T],
    retries: int = 1,
    delay: float = 2.0,
) -> T:
    """Call fn, retrying on rate limiting or overload.

    The delay doubles after every retry. Errors that are not 429/503
    propagate immediately.

    Args:
        fn: Zero-argument callable performing the request
        retries: Number of retries allowed
        delay: Seconds to wait before the first retry

    Returns:
        Whatever fn returns
    """
    while True:
        try:
            return fn()
        except Exception as e:
            if retries <= 0 or not is_retryable_error(e):
                raise
            logger.warning(
                "llm_rate_limited_retrying",
                delay_seconds=delay,
                attempts_left=retries,
                error=str(e),
            )
            time.sleep(delay)
            retries -= 1
            delay *= 2


# =============================================================================
# LLM CLIENT
# =============================================================================


class LLMClient:
    """Unified client for LLM interactions.

    Supports Gemini, Cerebras, Groq and OpenAI via the OpenAI-compatible API.
    """

    def __init__(
        self,
        config: LLMConfig | None = None,
        provider: str | None = None,
        model: str | None = None,
    ):
        """Initialize LLM client.

        Args:
            config: LLM configuration (built from app config if not provided)
            provider: Override provider from config
            model: Override model from config
        """
        if config is None:
            config = LLMConfig.from_app_config(provider=provider, model=model)
        elif provider is not None and provider != config.provider:
            # Re-resolve endpoint and key for the new provider
            resolved = LLMConfig.from_app_config(provider=provider, model=model)
            config.provider = resolved.provider
            config.base_url = resolved.base_url
            config.api_key = resolved.api_key
            config.model = resolved.model

        self.config = config

        if model is not None:
            self.config.model = model

        if not self.config.api_key:
            logger.warning("llm_api_key_missing", provider=self.config.provider)

        self._client = OpenAI(
            base_url=self.config.base_url,
            api_key=self.config.api_key or "not-set",
            timeout=self.config.timeout,
            max_retries=0,
        )

        logger.info(
            "llm_client_initialized",
            provider=self.config.provider,
            model=self.config.model,
            base_url=self.config.base_url,
        )

    def _supports_json_object(self) -> bool:
        """Check if current provider supports response_format json_object.

        Uses config override if set, otherwise falls back to provider defaults.
        """
        if self.config.supports_json_object is not None:
            return self.config.supports_json_object

        caps = PROVIDER_CAPABILITIES_DEFAULTS.get(self.config.provider, {})
        return caps.get("supports_json_object", False)

    def chat(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Send chat completion request.

        Args:
            messages: List of messages in conversation
            temperature: Override default temperature
            max_tokens: Override default max tokens
            json_mode: Request JSON response format (only if provider supports it)

        Returns:
            LLMResponse with content and metadata

        Raises:
            LLMConnectionError: If cannot connect to server
            LLMRateLimitError: If still rate limited after retrying
            LLMResponseError: If response is invalid
        """
        if temperature is None:
            temperature = self.config.temperature
        if max_tokens is None:
            max_tokens = self.config.max_tokens

        request_kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        if json_mode and self._supports_json_object():
            request_kwargs["response_format"] = {"type": "json_object"}

        start_time = time.time()

        try:
            response = call_with_retry(
                lambda: self._client.chat.completions.create(**request_kwargs),
                retries=self.config.max_retries,
                delay=self.config.retry_delay,
            )
        except Exception as e:
            error_msg = str(e)
            if is_retryable_error(e):
                raise LLMRateLimitError(
                    f"{self.config.provider} is rate limiting or overloaded: {e}"
                ) from e
            if "Connection" in error_msg or "connect" in error_msg.lower():
                raise LLMConnectionError(
                    f"Could not connect to {self.config.provider} at {self.config.base_url}: {e}"
                ) from e
            raise LLMError(f"LLM call failed: {e}") from e

        latency_ms = int((time.time() - start_time) * 1000)

        if not response.choices:
            raise LLMResponseError("Empty response from LLM")

        content = response.choices[0].message.content or ""

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        logger.debug(
            "llm_response",
            provider=self.config.provider,
            model=response.model,
            tokens=usage.get("total_tokens", 0),
            latency_ms=latency_ms,
        )

        return LLMResponse(
            content=content,
            model=response.model,
            provider=self.config.provider,
            usage=usage,
            latency_ms=latency_ms,
        )

    def chat_stream(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> Iterator[str]:
        """Send chat completion request with streaming.

        Yields content chunks as they arrive from the LLM.
        Falls back to non-streaming on error.
        """
        if temperature is None:
            temperature = self.config.temperature
        if max_tokens is None:
            max_tokens = self.config.max_tokens

        request_kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": True,
        }

        try:
            stream = call_with_retry(
                lambda: self._client.chat.completions.create(**request_kwargs),
                retries=self.config.max_retries,
                delay=self.config.retry_delay,
            )
            for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except Exception as e:
            logger.warning("streaming_failed_fallback", error=str(e))
            response = self.chat(messages, temperature, max_tokens)
            yield response.content

    def _try_parse_json(self, content: str) -> dict[str, Any] | None:
        """Try to parse JSON from content, with multiple extraction strategies.

        Tries:
        1. Direct parse
        2. Extract from ```json ... ``` blocks
        3. Extract first {...} object

        Returns parsed dict or None if all strategies fail.
        """
        content = _sanitize_for_json(content)

        try:
            parsed = json.loads(content)
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

        json_match = re.search(r"```(?:json)?\s*([\s\S]*?)```", content)
        if json_match:
            try:
                parsed = json.loads(json_match.group(1).strip())
                if isinstance(parsed, dict):
                    return parsed
            except json.JSONDecodeError:
                pass

        start = content.find("{")
        end = content.rfind("}") + 1
        if start >= 0 and end > start:
            try:
                parsed = json.loads(content[start:end])
                if isinstance(parsed, dict):
                    return parsed
            except json.JSONDecodeError:
                pass

        return None

    def chat_json(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
        max_retries: int = 1,
    ) -> dict[str, Any]:
        """Send chat request expecting JSON response.

        Uses robust parsing with a repair round-trip on failure.

        Raises:
            LLMResponseError: If response is not valid JSON after retries
        """
        response = self.chat(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=True,
        )

        parsed = self._try_parse_json(response.content)
        if parsed is not None:
            return parsed

        if max_retries > 0:
            logger.warning(
                "json_parse_failed_retrying",
                content=response.content[:100],
                provider=self.config.provider,
            )

            repair_prompt = JSON_REPAIR_PROMPT.format(
                invalid_output=response.content[:1000]
            )

            retry_messages = messages + [
                Message(role="assistant", content=response.content[:1000]),
                Message(role="user", content=repair_prompt),
            ]

            retry_response = self.chat(
                retry_messages,
                temperature=temperature,
                max_tokens=max_tokens,
                json_mode=True,
            )

            parsed = self._try_parse_json(retry_response.content)
            if parsed is not None:
                logger.info("json_parse_recovered_after_retry")
                return parsed

        raise LLMResponseError(
            f"Could not obtain valid JSON: {response.content[:200]}..."
        )

    def simple_chat(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Single-turn chat with system prompt and user message."""
        messages = [
            Message(role="system", content=system_prompt),
            Message(role="user", content=user_message),
        ]

        response = self.chat(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        return response.content

    def simple_json(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        """Single-turn chat expecting JSON response."""
        messages = [
            Message(role="system", content=system_prompt),
            Message(role="user", content=user_message),
        ]

        return self.chat_json(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    def is_available(self) -> bool:
        """Check if the provider endpoint answers.

        Returns:
            True if server responds, False otherwise
        """
        try:
            self._client.models.list()
            return True
        except Exception as e:
            logger.debug("llm_unavailable", provider=self.config.provider, error=str(e))
            return False
