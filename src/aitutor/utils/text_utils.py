"""Text processing utilities.

Common text manipulation functions used across modules.
"""

import re
import time

# Patterns for removing thinking/reasoning blocks from LLM output
THINK_PATTERNS = [
    re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<thinking>.*?</thinking>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<analysis>.*?</analysis>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<reasoning>.*?</reasoning>", re.DOTALL | re.IGNORECASE),
]

OPEN_THINK_TAGS = ["<think>", "<thinking>", "<analysis>", "<reasoning>"]
CLOSE_THINK_TAGS = ["</think>", "</thinking>", "</analysis>", "</reasoning>"]


def strip_think(text: str) -> str:
    """Remove thinking/reasoning tags and prefixes from LLM output.

    Removes:
    - <think>...</think> blocks
    - <thinking>...</thinking> blocks
    - <analysis>...</analysis> blocks
    - <reasoning>...</reasoning> blocks
    - a leading "Thinking..." line

    Args:
        text: Raw LLM output text

    Returns:
        Cleaned text without thinking artifacts
    """
    result = text
    for pattern in THINK_PATTERNS:
        result = pattern.sub("", result)

    lines = result.strip().split("\n")
    if lines and lines[0].strip().lower().startswith("thinking..."):
        lines = lines[1:]

    return "\n".join(lines).strip()


def strip_think_streaming(
    chunk: str, buffer: str, in_think: bool
) -> tuple[str, str, bool]:
    """Process a streaming chunk, filtering out think tags as they arrive.

    Keeps state across chunks so tags split over several chunks are
    still removed.

    Args:
        chunk: New text chunk from streaming
        buffer: Accumulated buffer from previous calls
        in_think: Whether we're currently inside a think tag

    Returns:
        Tuple of (output_text, new_buffer, new_in_think_state)
    """
    buffer += chunk
    output = ""

    while True:
        buffer_lower = buffer.lower()

        if in_think:
            close_idx = -1
            close_len = 0
            for tag in CLOSE_THINK_TAGS:
                idx = buffer_lower.find(tag)
                if idx >= 0 and (close_idx < 0 or idx < close_idx):
                    close_idx = idx
                    close_len = len(tag)

            if close_idx < 0:
                break
            buffer = buffer[close_idx + close_len :]
            in_think = False
            continue

        open_idx = -1
        open_len = 0
        for tag in OPEN_THINK_TAGS:
            idx = buffer_lower.find(tag)
            if idx >= 0 and (open_idx < 0 or idx < open_idx):
                open_idx = idx
                open_len = len(tag)

        if open_idx >= 0:
            output += buffer[:open_idx]
            buffer = buffer[open_idx + open_len :]
            in_think = True
            continue

        # Hold back a trailing "<thi" that may become a tag
        partial_at = buffer.rfind("<")
        if partial_at >= 0 and any(
            tag.startswith(buffer_lower[partial_at:]) for tag in OPEN_THINK_TAGS
        ):
            output += buffer[:partial_at]
            buffer = buffer[partial_at:]
        else:
            output += buffer
            buffer = ""
        break

    return output, buffer, in_think


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def make_id(prefix: str, index: int | None = None) -> str:
    """Build a record id like ``set-1700000000000`` or ``fc-1700000000000-3``."""
    if index is None:
        return f"{prefix}-{now_ms()}"
    return f"{prefix}-{now_ms()}-{index}"


def unique_id(prefix: str, existing: set[str]) -> str:
    """Like make_id, but suffixed until it does not collide with existing ids."""
    base = make_id(prefix)
    candidate = base
    n = 1
    while candidate in existing:
        candidate = f"{base}-{n}"
        n += 1
    return candidate


def truncate(text: str, max_len: int = 30, suffix: str = "...") -> str:
    """Cut text to max_len characters and append suffix."""
    return text[:max_len] + suffix
