"""Stored tutor conversation endpoints."""

from pathlib import Path

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from aitutor.core.chat_repository import (
    add_turn,
    delete_chat_session,
    get_chat_session,
    list_chat_sessions,
    new_chat_session,
    save_chat_session,
)
from aitutor.core.models import ChatSession
from aitutor.core.tutor import TutorInputError, generate_tutor_response
from aitutor.core.usage import (
    LimitDecision,
    check_limit,
    increment_message_count,
    remaining_messages,
)
from aitutor.core.user_repository import load_users_state, users_transaction
from aitutor.llm.client import LLMClient, LLMError
from aitutor.web.dependencies import get_llm_client, get_state_dir, require_user
from aitutor.web.schemas import (
    ChatMessageRequest,
    ChatSessionListResponse,
    ChatSessionResponse,
    ChatTurnResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/api/users/{user_id}/chats",
    tags=["chats"],
    dependencies=[Depends(require_user)],
)


def _session_response(session: ChatSession) -> ChatSessionResponse:
    return ChatSessionResponse(**session.to_dict())


def _limit_reached(decision: LimitDecision) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"error": decision.title, "details": decision.description},
    )


def _require_session(user_id: str, session_id: str, state_dir: Path) -> ChatSession:
    session = get_chat_session(user_id, session_id, state_dir)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chat session '{session_id}' not found",
        )
    return session


@router.get("", response_model=ChatSessionListResponse)
async def list_chats(user_id: str, state_dir: Path = Depends(get_state_dir)) -> ChatSessionListResponse:
    """List a user's conversations, newest first."""
    sessions = [_session_response(s) for s in list_chat_sessions(user_id, state_dir)]
    return ChatSessionListResponse(sessions=sessions, count=len(sessions))


@router.post("", response_model=ChatSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_chat(user_id: str, state_dir: Path = Depends(get_state_dir)) -> ChatSessionResponse:
    """Start a new conversation opened by the tutor's welcome message."""
    session = save_chat_session(user_id, new_chat_session(user_id), state_dir)
    return _session_response(session)


@router.get("/{session_id}", response_model=ChatSessionResponse)
async def get_chat(
    user_id: str,
    session_id: str,
    state_dir: Path = Depends(get_state_dir),
) -> ChatSessionResponse:
    return _session_response(_require_session(user_id, session_id, state_dir))


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chat(
    user_id: str,
    session_id: str,
    state_dir: Path = Depends(get_state_dir),
) -> None:
    if not delete_chat_session(user_id, session_id, state_dir):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chat session '{session_id}' not found",
        )


@router.post("/{session_id}/messages", response_model=ChatTurnResponse)
def send_message(
    user_id: str,
    session_id: str,
    request: ChatMessageRequest,
    client: LLMClient = Depends(get_llm_client),
    state_dir: Path = Depends(get_state_dir),
):
    """Send a message within a session and store both turns.

    Counts against the learner's daily allowance; nothing is stored if the
    tutor call fails. Session and user are re-read after the LLM call so
    changes saved meanwhile are kept.
    """
    user = load_users_state(state_dir).get_user(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User '{user_id}' not found",
        )
    session = _require_session(user_id, session_id, state_dir)

    decision = check_limit(user, "daily_messages")
    if not decision.allowed:
        return _limit_reached(decision)

    try:
        reply = generate_tutor_response(
            session.to_history(), request.text, client, user.learning_style
        )
    except TutorInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LLMError as e:
        logger.error("chat_turn_failed", user_id=user_id, session_id=session_id, error=str(e))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to generate response", "details": str(e)},
        )

    with users_transaction(state_dir) as users_state:
        user = users_state.get_user(user_id)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"User '{user_id}' not found",
            )
        decision = check_limit(user, "daily_messages")
        if not decision.allowed:
            return _limit_reached(decision)

        session = add_turn(user_id, session_id, request.text, reply, request.isAudio, state_dir)
        if session is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Chat session '{session_id}' not found",
            )
        increment_message_count(user)

    return ChatTurnResponse(
        reply=reply,
        session=_session_response(session),
        remaining_messages=remaining_messages(user),
    )
