"""Prompt Registry - Load prompts from Markdown templates.

Prompts live next to this module under templates/ and support
{variable} substitution.

Usage:
    from aitutor.prompts.registry import get_prompt

    prompt = get_prompt("flashcards/generate", topic="Photosynthesis", count="5")
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

PROMPTS_DIR = Path(__file__).parent / "templates"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def _get_prompt_uncached(key: str) -> str:
    """Load raw prompt from file without caching.

    Args:
        key: Path-like key, e.g., "tutor/system"

    Raises:
        FileNotFoundError: If prompt file doesn't exist
    """
    file_path = PROMPTS_DIR / f"{key}.md"
    if not file_path.exists():
        raise FileNotFoundError(f"Prompt not found: {key} (looked at {file_path})")

    return file_path.read_text(encoding="utf-8").strip()


@lru_cache(maxsize=64)
def _get_cached_prompt(key: str) -> str:
    """Cached version of prompt loading."""
    return _get_prompt_uncached(key)


def get_prompt(key: str, use_cache: bool = True, **variables: str | int) -> str:
    """Load prompt from file and substitute variables.

    Variables are substituted using {variable_name} syntax, in one pass,
    so braces inside substituted values are never expanded. Unknown
    placeholders are left untouched, so literal JSON braces in templates
    survive.

    Args:
        key: Path-like key, e.g., "quiz/generate"
        use_cache: Whether to use cached version (default True)
        **variables: Variables to substitute, e.g., topic="Cells"

    Returns:
        Prompt string with variables substituted

    Raises:
        FileNotFoundError: If prompt file doesn't exist
    """
    if use_cache:
        content = _get_cached_prompt(key)
    else:
        content = _get_prompt_uncached(key)

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        return str(variables[name]) if name in variables else match.group(0)

    return _PLACEHOLDER.sub(_substitute, content)


def list_prompts() -> list[str]:
    """List all available prompt keys, e.g. ["flashcards/generate", ...]."""
    if not PROMPTS_DIR.exists():
        logger.warning("prompts_dir_not_found", path=str(PROMPTS_DIR))
        return []

    prompts = []
    for path in PROMPTS_DIR.rglob("*.md"):
        key = str(path.relative_to(PROMPTS_DIR)).replace(".md", "").replace("\\", "/")
        prompts.append(key)
    return sorted(prompts)


def clear_cache() -> None:
    """Clear the prompt cache."""
    _get_cached_prompt.cache_clear()
