"""Application configuration loader.

Loads centralized configuration from data/config/app_config_v1.yaml
with fallback to built-in defaults. API keys are read from the environment,
which is populated from .env files on first load.

Usage:
    from aitutor.config.app_config import load_app_config, get_provider_config

    config = load_app_config()
    provider = get_provider_config("gemini")
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml
from dotenv import load_dotenv

logger = structlog.get_logger(__name__)

# Config file paths (relative to project root)
CONFIG_FILE = Path("data/config/app_config_v1.yaml")
ENV_FILES = [Path("server/.env"), Path(".env")]

# Environment overrides
ENV_PROVIDER = "AITUTOR_PROVIDER"
ENV_MODEL = "AITUTOR_MODEL"
ENV_DATA_DIR = "AITUTOR_DATA_DIR"


@dataclass
class ProviderConfig:
    """Configuration for a single LLM provider."""

    base_url: str | None
    default_model: str
    api_key_env: str | None = None
    fallback_api_key_env: str | None = None

    def get_api_key(self) -> str | None:
        """Get API key from environment variable."""
        if self.api_key_env and os.environ.get(self.api_key_env):
            return os.environ.get(self.api_key_env)
        if self.fallback_api_key_env:
            return os.environ.get(self.fallback_api_key_env)
        return None


@dataclass
class TutorConfig:
    """Configuration for LLM request defaults."""

    default_provider: str = "gemini"
    max_retries: int = 1
    retry_delay_seconds: float = 2.0
    request_timeout: int = 60
    temperature: float = 0.7


@dataclass
class LimitsConfig:
    """Free-tier limits."""

    daily_messages: int = 10
    flashcard_sets: int = 3
    folders: int = 2


@dataclass
class AppConfig:
    """Application-wide configuration."""

    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    tutor: TutorConfig = field(default_factory=TutorConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    paths: dict[str, str] = field(default_factory=dict)

    @property
    def state_dir(self) -> Path:
        """Directory holding the JSON state files."""
        data_dir = os.environ.get(ENV_DATA_DIR)
        if data_dir:
            return Path(data_dir) / "state"
        return Path(self.paths.get("state_dir", "data/state"))


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "providers": {
            "gemini": {
                "base_url": "https://generativelanguage.googleapis.com/v1beta/openai/",
                "default_model": "gemini-2.0-flash",
                "api_key_env": "GEMINI_API_KEY",
                "fallback_api_key_env": "API_KEY",
            },
            "cerebras": {
                "base_url": "https://api.cerebras.ai/v1",
                "default_model": "llama3.1-8b",
                "api_key_env": "CEREBRAS_API_KEY",
            },
            "groq": {
                "base_url": "https://api.groq.com/openai/v1",
                "default_model": "llama-3.3-70b-versatile",
                "api_key_env": "GROQ_API_KEY",
            },
            "openai": {
                "base_url": None,
                "default_model": "gpt-4o-mini",
                "api_key_env": "OPENAI_API_KEY",
            },
        },
        "tutor": {
            "default_provider": "gemini",
            "max_retries": 1,
            "retry_delay_seconds": 2.0,
            "request_timeout": 60,
            "temperature": 0.7,
        },
        "limits": {
            "daily_messages": 10,
            "flashcard_sets": 3,
            "folders": 2,
        },
        "paths": {
            "state_dir": "data/state",
            "config_dir": "data/config",
        },
    }


def _merge(defaults: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Merge YAML overrides into defaults, one level deep per section."""
    result = dict(defaults)
    for section, value in overrides.items():
        if isinstance(value, dict) and isinstance(result.get(section), dict):
            merged = dict(result[section])
            merged.update(value)
            result[section] = merged
        else:
            result[section] = value
    return result


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    providers = {}
    for name, pconfig in data.get("providers", {}).items():
        providers[name] = ProviderConfig(
            base_url=pconfig.get("base_url"),
            default_model=pconfig.get("default_model", "default"),
            api_key_env=pconfig.get("api_key_env"),
            fallback_api_key_env=pconfig.get("fallback_api_key_env"),
        )

    tutor_data = data.get("tutor", {})
    tutor = TutorConfig(
        default_provider=os.environ.get(ENV_PROVIDER)
        or tutor_data.get("default_provider", "gemini"),
        max_retries=int(tutor_data.get("max_retries", 1)),
        retry_delay_seconds=float(tutor_data.get("retry_delay_seconds", 2.0)),
        request_timeout=int(tutor_data.get("request_timeout", 60)),
        temperature=float(tutor_data.get("temperature", 0.7)),
    )

    limits_data = data.get("limits", {})
    limits = LimitsConfig(
        daily_messages=int(limits_data.get("daily_messages", 10)),
        flashcard_sets=int(limits_data.get("flashcard_sets", 3)),
        folders=int(limits_data.get("folders", 2)),
    )

    paths = data.get("paths", {})

    return AppConfig(providers=providers, tutor=tutor, limits=limits, paths=paths)


def load_env_files() -> None:
    """Populate os.environ from .env files without overriding existing vars."""
    for env_file in ENV_FILES:
        if env_file.exists():
            load_dotenv(env_file, override=False)
            logger.debug("env_file_loaded", path=str(env_file))


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config, falling back to defaults.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    load_env_files()

    data = _get_defaults()
    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        overrides = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
        data = _merge(data, overrides)
    else:
        logger.info("using_default_config")

    _cached_config = _parse_config(data)
    return _cached_config


def get_provider_config(provider: str) -> ProviderConfig | None:
    """Get configuration for a specific provider.

    Args:
        provider: Provider name (e.g., "gemini", "groq")

    Returns:
        ProviderConfig or None if provider not found.
    """
    config = load_app_config()
    return config.providers.get(provider)


def get_default_model(provider: str) -> str:
    """Resolve the model to use for a provider (env override first)."""
    override = os.environ.get(ENV_MODEL)
    if override:
        return override
    pconfig = get_provider_config(provider)
    return pconfig.default_model if pconfig else "default"


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
