"""Configuration package for the AI tutor."""

from aitutor.config.app_config import (
    AppConfig,
    LimitsConfig,
    ProviderConfig,
    TutorConfig,
    clear_config_cache,
    get_default_model,
    get_provider_config,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "LimitsConfig",
    "ProviderConfig",
    "TutorConfig",
    "clear_config_cache",
    "get_default_model",
    "get_provider_config",
    "load_app_config",
]
