"""User repository module.

Responsibilities:
- Persist learner profiles to state/users_v1.json
- Track the signed-in learner (the "current session" email)
- Look profiles up by id or email

Output structure (JSON):
- users_v1 schema: {"$schema", "active_email", "users": {user_id: profile}}
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from aitutor.config.app_config import load_app_config
from aitutor.core.models import UserProfile

logger = structlog.get_logger(__name__)

USERS_SCHEMA = "users_v1"
USERS_FILENAME = "users_v1.json"

# Serializes read-modify-write of users_v1.json across request threads
_users_lock = threading.RLock()


@dataclass
class UsersState:
    """All known learners plus the signed-in one."""

    active_email: str | None = None
    users: dict[str, UserProfile] = field(default_factory=dict)

    def get_user(self, user_id: str) -> UserProfile | None:
        return self.users.get(user_id)

    def get_user_by_email(self, email: str) -> UserProfile | None:
        """Get user by email (case-insensitive)."""
        email_lower = email.lower()
        for user in self.users.values():
            if user.email.lower() == email_lower:
                return user
        return None

    def put_user(self, user: UserProfile) -> None:
        self.users[user.id] = user

    def remove_user(self, user_id: str) -> bool:
        """Remove a user by ID. Returns True if removed."""
        user = self.users.pop(user_id, None)
        if user is None:
            return False
        if self.active_email and user.email.lower() == self.active_email.lower():
            self.active_email = None
        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "$schema": USERS_SCHEMA,
            "active_email": self.active_email,
            "users": {user_id: u.to_dict() for user_id, u in self.users.items()},
        }


def _resolve_state_dir(state_dir: Path | None) -> Path:
    if state_dir is None:
        return load_app_config().state_dir
    return state_dir


def load_users_state(state_dir: Path | None = None) -> UsersState:
    """Load users from disk, or return fresh state.

    Args:
        state_dir: State directory. Defaults to the configured one.

    Returns:
        UsersState (fresh if file missing or corrupted)
    """
    state_dir = _resolve_state_dir(state_dir)
    users_path = state_dir / USERS_FILENAME

    if not users_path.exists():
        logger.debug("users_state_not_found", path=str(users_path))
        return UsersState()

    try:
        with open(users_path, encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict) or data.get("$schema") != USERS_SCHEMA:
            logger.warning(
                "users_state_invalid_schema",
                expected=USERS_SCHEMA,
                got=data.get("$schema") if isinstance(data, dict) else type(data).__name__,
            )
            return UsersState()

        users = {
            user_id: UserProfile.from_dict(u_data)
            for user_id, u_data in data.get("users", {}).items()
        }
        return UsersState(active_email=data.get("active_email"), users=users)

    except (json.JSONDecodeError, OSError, AttributeError, KeyError, TypeError, ValueError) as e:
        logger.error("users_state_load_failed", error=str(e))
        return UsersState()


def save_users_state(state: UsersState, state_dir: Path | None = None) -> Path:
    """Persist users to disk.

    Returns:
        Path to saved state file
    """
    state_dir = _resolve_state_dir(state_dir)
    state_dir.mkdir(parents=True, exist_ok=True)
    users_path = state_dir / USERS_FILENAME

    with open(users_path, "w", encoding="utf-8") as f:
        json.dump(state.to_dict(), f, indent=2, ensure_ascii=False)

    logger.debug("users_state_saved", path=str(users_path))
    return users_path


@contextmanager
def users_transaction(state_dir: Path | None = None) -> Iterator[UsersState]:
    """Load users, yield them for changes, then save.

    Holds a process-wide lock for the whole block, so keep slow work (LLM
    calls) outside it. Nothing is saved if the block raises.
    """
    with _users_lock:
        state = load_users_state(state_dir)
        yield state
        save_users_state(state, state_dir)


# =============================================================================
# CONVENIENCE OPERATIONS
# =============================================================================


def save_user(user: UserProfile, state_dir: Path | None = None) -> UserProfile:
    """Insert or replace a user."""
    with users_transaction(state_dir) as state:
        state.put_user(user)
    return user


def get_user(user_id: str, state_dir: Path | None = None) -> UserProfile | None:
    return load_users_state(state_dir).get_user(user_id)


def get_user_by_email(email: str, state_dir: Path | None = None) -> UserProfile | None:
    return load_users_state(state_dir).get_user_by_email(email)


def delete_user(user_id: str, state_dir: Path | None = None) -> bool:
    """Delete a user profile. Their library and chats are left on disk."""
    with users_transaction(state_dir) as state:
        removed = state.remove_user(user_id)
    if removed:
        logger.info("user_deleted", user_id=user_id)
    return removed


def save_session(email: str, state_dir: Path | None = None) -> None:
    """Mark the learner with this email as signed in."""
    with users_transaction(state_dir) as state:
        state.active_email = email


def get_session_user(state_dir: Path | None = None) -> UserProfile | None:
    """Profile of the signed-in learner, if any."""
    state = load_users_state(state_dir)
    if not state.active_email:
        return None
    return state.get_user_by_email(state.active_email)


def clear_session(state_dir: Path | None = None) -> None:
    """Sign the current learner out."""
    with users_transaction(state_dir) as state:
        state.active_email = None
