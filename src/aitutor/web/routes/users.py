"""Learner profile endpoints."""

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, status

from aitutor.core.library_repository import load_library
from aitutor.core.models import UserProfile, create_default_user
from aitutor.core.usage import (
    Feature,
    can_send_message,
    check_limit,
    record_quiz_result,
    remaining_messages,
    update_streak,
    upgrade,
)
from aitutor.core.user_repository import UsersState, load_users_state, save_users_state
from aitutor.web.dependencies import get_state_dir
from aitutor.web.schemas import (
    LimitResponse,
    QuizResultRequest,
    QuizResultResponse,
    SessionRequest,
    UsageResponse,
    UserCreate,
    UserListResponse,
    UserResponse,
    UserUpdate,
)

router = APIRouter(prefix="/api/users", tags=["users"])


def _to_response(user: UserProfile) -> UserResponse:
    return UserResponse(**user.to_dict())


def _require_user(state: UsersState, user_id: str) -> UserProfile:
    user = state.get_user(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User '{user_id}' not found",
        )
    return user


@router.get("", response_model=UserListResponse)
async def list_users(state_dir: Path = Depends(get_state_dir)) -> UserListResponse:
    """List all users."""
    state = load_users_state(state_dir)
    users = [_to_response(u) for u in state.users.values()]
    return UserListResponse(users=users, count=len(users))


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    state_dir: Path = Depends(get_state_dir),
) -> UserResponse:
    """Sign up a new learner on the free tier."""
    email = user_data.email.strip()
    if "@" not in email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid email format",
        )

    state = load_users_state(state_dir)
    if state.get_user_by_email(email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User with email '{email}' already exists",
        )

    user = create_default_user(email, user_data.firstName, user_data.lastName)
    while state.get_user(user.id) is not None:
        user.id = f"{user.id}-{len(state.users)}"
    user.learning_style = user_data.learningStyle
    user.interests = list(user_data.interests)

    state.put_user(user)
    save_users_state(state, state_dir)
    return _to_response(user)


# -- session (declared before /{user_id} so "session" is not taken as an id)


@router.get("/session", response_model=UserResponse)
async def get_session(state_dir: Path = Depends(get_state_dir)) -> UserResponse:
    """Profile of the signed-in learner."""
    state = load_users_state(state_dir)
    user = state.get_user_by_email(state.active_email) if state.active_email else None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active session",
        )
    return _to_response(user)


@router.post("/session", response_model=UserResponse)
async def sign_in(
    request: SessionRequest,
    state_dir: Path = Depends(get_state_dir),
) -> UserResponse:
    """Sign in as an existing learner by email."""
    state = load_users_state(state_dir)
    user = state.get_user_by_email(request.email)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No user with email '{request.email}'",
        )

    state.active_email = user.email
    update_streak(user)
    save_users_state(state, state_dir)
    return _to_response(user)


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(state_dir: Path = Depends(get_state_dir)) -> None:
    state = load_users_state(state_dir)
    state.active_email = None
    save_users_state(state, state_dir)


# -- single user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, state_dir: Path = Depends(get_state_dir)) -> UserResponse:
    """Get a specific user by ID."""
    return _to_response(_require_user(load_users_state(state_dir), user_id))


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    changes: UserUpdate,
    state_dir: Path = Depends(get_state_dir),
) -> UserResponse:
    """Update profile fields that are present in the body."""
    state = load_users_state(state_dir)
    user = _require_user(state, user_id)

    if changes.firstName is not None:
        user.first_name = changes.firstName
    if changes.lastName is not None:
        user.last_name = changes.lastName
    if changes.firstName is not None or changes.lastName is not None:
        user.name = f"{user.first_name} {user.last_name}".strip()
    if changes.avatar is not None:
        user.avatar = changes.avatar
    if changes.learningStyle is not None:
        user.learning_style = changes.learningStyle
    if changes.interests is not None:
        user.interests = list(changes.interests)
    if changes.theme is not None:
        user.theme = changes.theme
    if changes.lessonsCompleted is not None:
        user.lessons_completed = changes.lessonsCompleted

    save_users_state(state, state_dir)
    return _to_response(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: str, state_dir: Path = Depends(get_state_dir)) -> None:
    """Delete a user profile."""
    state = load_users_state(state_dir)
    if not state.remove_user(user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User '{user_id}' not found",
        )
    save_users_state(state, state_dir)


# -- progress and subscription


@router.post("/{user_id}/streak", response_model=UserResponse)
async def touch_streak(user_id: str, state_dir: Path = Depends(get_state_dir)) -> UserResponse:
    """Record today's activity for the daily streak."""
    state = load_users_state(state_dir)
    user = update_streak(_require_user(state, user_id))
    save_users_state(state, state_dir)
    return _to_response(user)


@router.post("/{user_id}/upgrade", response_model=UserResponse)
async def upgrade_user(user_id: str, state_dir: Path = Depends(get_state_dir)) -> UserResponse:
    """Move a learner to the pro tier."""
    state = load_users_state(state_dir)
    user = upgrade(_require_user(state, user_id))
    save_users_state(state, state_dir)
    return _to_response(user)


@router.get("/{user_id}/usage", response_model=UsageResponse)
async def get_usage(user_id: str, state_dir: Path = Depends(get_state_dir)) -> UsageResponse:
    user = _require_user(load_users_state(state_dir), user_id)
    return UsageResponse(
        subscription_tier=user.subscription_tier,
        daily_messages=user.usage.daily_messages if user.usage else 0,
        remaining_messages=remaining_messages(user),
        can_send_message=can_send_message(user),
    )


@router.get("/{user_id}/limits/{feature}", response_model=LimitResponse)
async def get_limit(
    user_id: str,
    feature: Feature,
    count: int | None = None,
    state_dir: Path = Depends(get_state_dir),
) -> LimitResponse:
    """Check a feature limit.

    Without ``count``, the user's current number of sets or folders is used.
    """
    user = _require_user(load_users_state(state_dir), user_id)

    if count is None:
        count = 0
        if feature in ("flashcard_sets", "folders"):
            library = load_library(user_id, state_dir)
            count = len(library.sets) if feature == "flashcard_sets" else len(library.folders)

    decision = check_limit(user, feature, current_count=count)
    return LimitResponse(
        allowed=decision.allowed,
        feature=decision.feature,
        title=decision.title,
        description=decision.description,
    )


@router.post("/{user_id}/quiz-results", response_model=QuizResultResponse)
async def add_quiz_result(
    user_id: str,
    result: QuizResultRequest,
    state_dir: Path = Depends(get_state_dir),
) -> QuizResultResponse:
    """Add a finished quiz to the learner's stats and award XP."""
    state = load_users_state(state_dir)
    user = _require_user(state, user_id)

    try:
        xp_gained = record_quiz_result(user, result.score, result.total)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    save_users_state(state, state_dir)
    return QuizResultResponse(
        xpGained=xp_gained,
        xp=user.xp,
        level=user.level,
        quizTotalQuestions=user.quiz_total_questions,
        quizTotalCorrect=user.quiz_total_correct,
    )
