"""Shared dependencies for route handlers.

The LLM client is built once per process from app config; state dir is
read from config on every request so tests can point it elsewhere.
"""

from pathlib import Path

from fastapi import Depends, HTTPException, status

from aitutor.config.app_config import load_app_config
from aitutor.core.user_repository import load_users_state
from aitutor.llm.client import LLMClient

_llm_client: LLMClient | None = None


def get_llm_client() -> LLMClient:
    """Get the global LLM client instance."""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client


def reset_llm_client() -> None:
    """Reset the global LLM client (for testing or provider change)."""
    global _llm_client
    _llm_client = None


def get_state_dir() -> Path:
    return load_app_config().state_dir


def require_user(user_id: str, state_dir: Path = Depends(get_state_dir)) -> str:
    """Path user id, checked against the stored learners.

    Unknown ids get 404 before any per-user file is read or created.
    """
    if load_users_state(state_dir).get_user(user_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User '{user_id}' not found",
        )
    return user_id
