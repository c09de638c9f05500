"""AI generation endpoints.

Thin proxy between the web client and the LLM provider. Handlers are
plain functions so the blocking SDK call runs in FastAPI's threadpool.
"""

from pathlib import Path

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from aitutor.core.flashcard_generator import (
    FlashcardGenerationError,
    generate_card_answer,
    generate_flashcards,
)
from aitutor.core.models import LearningStyle
from aitutor.core.quiz_generator import QuizGenerationError, generate_quiz
from aitutor.core.tutor import TutorInputError, generate_tutor_response
from aitutor.core.usage import LimitDecision, check_limit, increment_message_count
from aitutor.core.user_repository import load_users_state, users_transaction
from aitutor.llm.client import LLMClient, LLMError
from aitutor.web.dependencies import get_llm_client, get_state_dir
from aitutor.web.schemas import (
    CardAnswerRequest,
    ChatRequest,
    ErrorResponse,
    FlashcardsRequest,
    FlashcardsResponse,
    GeneratedCardSchema,
    QuizQuestionSchema,
    QuizRequest,
    QuizResponse,
    TextResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["ai"])

ERROR_RESPONSES = {500: {"model": ErrorResponse}}


def _failure(message: str, error: Exception) -> JSONResponse:
    logger.error("ai_request_failed", error_message=message, details=str(error))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": message, "details": str(error)},
    )


def _limit_reached(decision: LimitDecision) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"error": decision.title, "details": decision.description},
    )


def _user_not_found(user_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"User '{user_id}' not found",
    )


@router.post("/chat", response_model=TextResponse, responses=ERROR_RESPONSES)
def chat(
    request: ChatRequest,
    client: LLMClient = Depends(get_llm_client),
    state_dir: Path = Depends(get_state_dir),
):
    """Tutor reply to a message given the prior conversation.

    With user_id, the free daily message allowance is enforced and counted.
    Users are re-read after the LLM call so changes saved meanwhile survive.
    """
    learning_style = LearningStyle.VISUAL

    if request.user_id:
        user = load_users_state(state_dir).get_user(request.user_id)
        if user is None:
            raise _user_not_found(request.user_id)
        decision = check_limit(user, "daily_messages")
        if not decision.allowed:
            return _limit_reached(decision)
        learning_style = user.learning_style

    history = [entry.model_dump() for entry in request.history]

    try:
        text = generate_tutor_response(history, request.message, client, learning_style)
    except TutorInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LLMError as e:
        return _failure("Failed to generate response", e)

    if request.user_id:
        with users_transaction(state_dir) as users_state:
            user = users_state.get_user(request.user_id)
            if user is None:
                raise _user_not_found(request.user_id)
            decision = check_limit(user, "daily_messages")
            if not decision.allowed:
                return _limit_reached(decision)
            increment_message_count(user)

    return TextResponse(text=text)


@router.post("/flashcards", response_model=FlashcardsResponse, responses=ERROR_RESPONSES)
def flashcards(request: FlashcardsRequest, client: LLMClient = Depends(get_llm_client)):
    """Generate study flashcards about a topic."""
    try:
        cards = generate_flashcards(request.topic, client, count=request.count)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except (LLMError, FlashcardGenerationError) as e:
        return _failure("Failed to generate flashcards", e)

    return FlashcardsResponse(
        cards=[GeneratedCardSchema(front=c.front, back=c.back) for c in cards]
    )


@router.post("/card-answer", response_model=TextResponse, responses=ERROR_RESPONSES)
def card_answer(request: CardAnswerRequest, client: LLMClient = Depends(get_llm_client)):
    """Write a short answer for a flashcard front."""
    try:
        text = generate_card_answer(request.front, client)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LLMError as e:
        return _failure("Failed to generate answer", e)

    return TextResponse(text=text)


@router.post("/quiz", response_model=QuizResponse, responses=ERROR_RESPONSES)
def quiz(request: QuizRequest, client: LLMClient = Depends(get_llm_client)):
    """Generate a multiple-choice quiz."""
    try:
        questions = generate_quiz(
            request.topic,
            client,
            difficulty=request.difficulty,
            n=request.count,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except (LLMError, QuizGenerationError) as e:
        return _failure("Failed to generate quiz", e)

    return QuizResponse(
        questions=[QuizQuestionSchema(**q.to_dict()) for q in questions]
    )
