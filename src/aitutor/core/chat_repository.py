"""Chat history repository.

Responsibilities:
- Persist a learner's tutor conversations to
  state/users/{user_id}/chats_v1.json (newest session first)
- Migrate the legacy chat_history.json, which holds either a bare list of
  sessions or a single flat list of messages

Output structure (JSON):
- chats_v1 schema: {"$schema", "sessions": [...]}
"""

from __future__ import annotations

import json
import threading
import uuid
from pathlib import Path
from typing import Any

import structlog

from aitutor.core.library_repository import user_state_dir
from aitutor.core.models import ChatMessage, ChatRole, ChatSession
from aitutor.utils.text_utils import make_id, now_ms, truncate

logger = structlog.get_logger(__name__)

CHATS_SCHEMA = "chats_v1"
CHATS_FILENAME = "chats_v1.json"
LEGACY_CHATS_FILENAME = "chat_history.json"

_chats_lock = threading.RLock()

NEW_CHAT_TITLE = "New Chat"
MIGRATED_CHAT_TITLE = "Past Conversation"
TITLE_LENGTH = 30
WELCOME_MESSAGE = (
    "Hi there! I'm your AI Tutor. What would you like to learn about today? "
    "I can help with math, science, coding, or any other subject!"
)


# =============================================================================
# SESSION HELPERS
# =============================================================================


def new_chat_session(user_id: str, with_welcome: bool = True) -> ChatSession:
    """Create an unsaved session, opened by the tutor's welcome message."""
    now = now_ms()
    messages = []
    if with_welcome:
        messages.append(ChatMessage(id="welcome", role="model", text=WELCOME_MESSAGE, timestamp=now))
    return ChatSession(
        id=str(uuid.uuid4())[:8],
        user_id=user_id,
        title=NEW_CHAT_TITLE,
        messages=messages,
        created_at=now,
        last_updated_at=now,
    )


def _title_from_first_user_message(session: ChatSession) -> str:
    for message in session.messages:
        if message.role == "user":
            if len(message.text) > TITLE_LENGTH:
                return truncate(message.text, TITLE_LENGTH)
            return message.text or NEW_CHAT_TITLE
    return NEW_CHAT_TITLE


def add_message(session: ChatSession, role: ChatRole, text: str) -> ChatMessage:
    """Append a message; the first real exchange names the session."""
    had_only_welcome = len(session.messages) <= 1
    message = ChatMessage(id=make_id("msg", len(session.messages)), role=role, text=text)
    session.messages.append(message)
    session.last_updated_at = message.timestamp

    if had_only_welcome and len(session.messages) > 1 and session.title == NEW_CHAT_TITLE:
        session.title = _title_from_first_user_message(session)
    return message


# =============================================================================
# PERSISTENCE
# =============================================================================


def _migrate_legacy_chats(parsed: Any, user_id: str) -> list[ChatSession]:
    """Convert legacy chat history (sessions or flat messages) to sessions."""
    if not isinstance(parsed, list) or not parsed:
        return []

    if isinstance(parsed[0], dict) and "messages" in parsed[0]:
        return [ChatSession.from_dict(s) for s in parsed]

    legacy_messages = [ChatMessage.from_dict(m) for m in parsed if isinstance(m, dict)]
    if legacy_messages:
        title = truncate(legacy_messages[0].text, TITLE_LENGTH)
        created_at = legacy_messages[0].timestamp
    else:
        title = MIGRATED_CHAT_TITLE
        created_at = now_ms()

    return [
        ChatSession(
            id=make_id("session-migrated"),
            user_id=user_id,
            title=title,
            messages=legacy_messages,
            created_at=created_at,
            last_updated_at=now_ms(),
        )
    ]


def _write_sessions(user_id: str, sessions: list[ChatSession], state_dir: Path | None) -> Path:
    user_dir = user_state_dir(user_id, state_dir)
    user_dir.mkdir(parents=True, exist_ok=True)
    chats_path = user_dir / CHATS_FILENAME

    data = {"$schema": CHATS_SCHEMA, "sessions": [s.to_dict() for s in sessions]}
    with open(chats_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)

    logger.debug("chats_saved", path=str(chats_path), sessions=len(sessions))
    return chats_path


def list_chat_sessions(user_id: str, state_dir: Path | None = None) -> list[ChatSession]:
    """Load a user's chat sessions, newest first.

    Migrates legacy chat history on first load and saves it in the
    current format. Corrupted files load as no sessions.
    """
    user_dir = user_state_dir(user_id, state_dir)
    chats_path = user_dir / CHATS_FILENAME
    legacy_path = user_dir / LEGACY_CHATS_FILENAME

    if chats_path.exists():
        try:
            with open(chats_path, encoding="utf-8") as f:
                data = json.load(f)

            if not isinstance(data, dict) or data.get("$schema") != CHATS_SCHEMA:
                logger.warning(
                    "chats_invalid_schema",
                    expected=CHATS_SCHEMA,
                    got=data.get("$schema") if isinstance(data, dict) else type(data).__name__,
                )
                return []

            return [ChatSession.from_dict(s) for s in data.get("sessions", [])]

        except (json.JSONDecodeError, OSError, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error("chats_load_failed", user_id=user_id, error=str(e))
            return []

    if legacy_path.exists():
        try:
            with open(legacy_path, encoding="utf-8") as f:
                parsed = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("legacy_chats_load_failed", user_id=user_id, error=str(e))
            return []

        try:
            sessions = _migrate_legacy_chats(parsed, user_id)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error("legacy_chats_migration_failed", user_id=user_id, error=str(e))
            return []
        _write_sessions(user_id, sessions, state_dir)
        logger.info("legacy_chats_migrated", user_id=user_id, sessions=len(sessions))
        return sessions

    return []


def get_chat_session(
    user_id: str, session_id: str, state_dir: Path | None = None
) -> ChatSession | None:
    for session in list_chat_sessions(user_id, state_dir):
        if session.id == session_id:
            return session
    return None


def save_chat_session(
    user_id: str, session: ChatSession, state_dir: Path | None = None
) -> ChatSession:
    """Insert or replace a session. New sessions go to the top."""
    with _chats_lock:
        sessions = list_chat_sessions(user_id, state_dir)

        for i, existing in enumerate(sessions):
            if existing.id == session.id:
                sessions[i] = session
                break
        else:
            sessions.insert(0, session)

        _write_sessions(user_id, sessions, state_dir)
    return session


def add_turn(
    user_id: str,
    session_id: str,
    user_text: str,
    reply: str,
    is_audio: bool = False,
    state_dir: Path | None = None,
) -> ChatSession | None:
    """Append a learner message and the tutor's reply to a stored session.

    The session is re-read under the lock, so turns saved meanwhile are
    kept. Returns None if the session no longer exists.
    """
    with _chats_lock:
        session = get_chat_session(user_id, session_id, state_dir)
        if session is None:
            return None
        user_message = add_message(session, "user", user_text)
        user_message.is_audio = is_audio
        add_message(session, "model", reply)
        save_chat_session(user_id, session, state_dir)
    return session


def delete_chat_session(user_id: str, session_id: str, state_dir: Path | None = None) -> bool:
    """Delete a session. Returns True if removed."""
    with _chats_lock:
        sessions = list_chat_sessions(user_id, state_dir)
        remaining = [s for s in sessions if s.id != session_id]
        if len(remaining) == len(sessions):
            return False
        _write_sessions(user_id, remaining, state_dir)

    logger.info("chat_session_deleted", user_id=user_id, session_id=session_id)
    return True
