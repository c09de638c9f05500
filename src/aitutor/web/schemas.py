"""Pydantic schemas for the Web API.

Request/response models for the AI endpoints, learner profiles, the
flashcard library and chat sessions. Field names follow the camelCase
keys the web client already uses.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

from aitutor.core.models import Difficulty, LearningStyle


# =============================================================================
# AI SCHEMAS
# =============================================================================


class HistoryPart(BaseModel):
    """One part of a history message."""

    text: str = ""


class HistoryEntry(BaseModel):
    """A prior conversation turn."""

    role: str = "user"
    parts: list[HistoryPart] = Field(default_factory=list)


class ChatRequest(BaseModel):
    """Request body for POST /api/chat."""

    history: list[HistoryEntry] = Field(default_factory=list)
    message: str = Field(..., min_length=1, max_length=8000)
    user_id: str | None = None


class TextResponse(BaseModel):
    """Plain text reply."""

    text: str


class FlashcardsRequest(BaseModel):
    """Request body for POST /api/flashcards."""

    topic: str = Field(..., min_length=1, max_length=200)
    count: int = Field(default=5, ge=1, le=50)


class GeneratedCardSchema(BaseModel):
    """A generated card without id."""

    front: str
    back: str


class FlashcardsResponse(BaseModel):
    """Response for POST /api/flashcards."""

    cards: list[GeneratedCardSchema]


class CardAnswerRequest(BaseModel):
    """Request body for POST /api/card-answer."""

    front: str = Field(..., min_length=1, max_length=500)


class QuizRequest(BaseModel):
    """Request body for POST /api/quiz."""

    topic: str = Field(..., min_length=1, max_length=200)
    difficulty: Difficulty = Difficulty.INTERMEDIATE
    count: int = Field(default=5, ge=1, le=20)


class QuizQuestionSchema(BaseModel):
    """A multiple-choice question."""

    id: str
    question: str
    options: list[str]
    correctIndex: int
    explanation: str = ""


class QuizResponse(BaseModel):
    """Response for POST /api/quiz."""

    questions: list[QuizQuestionSchema]


class ErrorResponse(BaseModel):
    """Body returned when an LLM call fails."""

    error: str
    details: str = ""


# =============================================================================
# USER SCHEMAS
# =============================================================================


class UsageSchema(BaseModel):
    """Daily usage counter."""

    daily_messages: int = 0
    last_reset_date: str = ""


class UserCreate(BaseModel):
    """Request body for creating a user."""

    email: str = Field(..., min_length=3, max_length=200)
    firstName: str = Field(..., min_length=1, max_length=100)
    lastName: str = Field(default="", max_length=100)
    learningStyle: LearningStyle = LearningStyle.VISUAL
    interests: list[str] = Field(default_factory=list)


class UserUpdate(BaseModel):
    """Partial profile update."""

    firstName: str | None = Field(default=None, min_length=1, max_length=100)
    lastName: str | None = Field(default=None, max_length=100)
    avatar: str | None = None
    learningStyle: LearningStyle | None = None
    interests: list[str] | None = None
    theme: Literal["light", "dark"] | None = None
    lessonsCompleted: int | None = Field(default=None, ge=0)


class UserResponse(BaseModel):
    """Response for a user profile."""

    id: str
    firstName: str
    lastName: str
    name: str
    email: str
    avatar: str
    level: int
    xp: int
    streak: int
    lastActiveDate: str | None = None
    learningStyle: LearningStyle
    interests: list[str]
    theme: str
    subscription_tier: str
    subscription_status: str
    usage: UsageSchema | None = None
    lessonsCompleted: int
    quizTotalQuestions: int
    quizTotalCorrect: int


class UserListResponse(BaseModel):
    """Response for list of users."""

    users: list[UserResponse]
    count: int


class SessionRequest(BaseModel):
    """Sign in as the user with this email."""

    email: str


class UsageResponse(BaseModel):
    """Daily message allowance for a user."""

    subscription_tier: str
    daily_messages: int
    remaining_messages: int
    can_send_message: bool


class LimitResponse(BaseModel):
    """Outcome of a feature limit check."""

    allowed: bool
    feature: str
    title: str = ""
    description: str = ""


class QuizResultRequest(BaseModel):
    """A finished quiz to add to the user's stats."""

    score: int = Field(..., ge=0)
    total: int = Field(..., ge=1)


class QuizResultResponse(BaseModel):
    """XP outcome of a finished quiz."""

    xpGained: int
    xp: int
    level: int
    quizTotalQuestions: int
    quizTotalCorrect: int


# =============================================================================
# LIBRARY SCHEMAS
# =============================================================================


class FolderCreate(BaseModel):
    """Request body for creating a folder."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    tags: list[str] = Field(default_factory=list)


class FolderUpdate(BaseModel):
    """Partial folder update."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    tags: list[str] | None = None


class FolderResponse(BaseModel):
    """Response for a folder."""

    id: str
    name: str
    description: str
    tags: list[str]
    setIds: list[str]
    createdAt: int


class FolderListResponse(BaseModel):
    """Response for list of folders."""

    folders: list[FolderResponse]
    count: int


class CardInput(BaseModel):
    """A card sent by the client."""

    front: str = Field(..., min_length=1, max_length=1000)
    back: str = Field(default="", max_length=2000)
    mastered: bool = False


class CardUpdate(BaseModel):
    """Partial card update."""

    front: str | None = Field(default=None, min_length=1, max_length=1000)
    back: str | None = Field(default=None, max_length=2000)
    mastered: bool | None = None


class CardResponse(BaseModel):
    """Response for a card."""

    id: str
    front: str
    back: str
    mastered: bool


class SetCreate(BaseModel):
    """Request body for creating a set by hand."""

    title: str = Field(default="", max_length=200)
    description: str = Field(default="", max_length=1000)
    cards: list[CardInput] = Field(default_factory=list)
    folderId: str | None = None


class SetGenerate(BaseModel):
    """Request body for creating a set from generated cards."""

    topic: str = Field(..., min_length=1, max_length=200)
    count: int = Field(default=5, ge=1, le=50)
    title: str = Field(default="", max_length=200)
    description: str = Field(default="", max_length=1000)
    folderId: str | None = None


class SetUpdate(BaseModel):
    """Partial set update."""

    title: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    cards: list[CardResponse] | None = None


class SetMove(BaseModel):
    """Move a set into a folder, or out of folders with null."""

    folderId: str | None = None


class SetResponse(BaseModel):
    """Response for a flashcard set."""

    id: str
    title: str
    description: str
    cards: list[CardResponse]
    createdAt: int
    folderId: str | None = None


class SetListResponse(BaseModel):
    """Response for list of sets."""

    sets: list[SetResponse]
    count: int


# =============================================================================
# CHAT SESSION SCHEMAS
# =============================================================================


class ChatMessageResponse(BaseModel):
    """One stored chat message."""

    id: str
    role: Literal["user", "model"]
    text: str
    timestamp: int
    isAudio: bool = False


class ChatSessionResponse(BaseModel):
    """A stored chat session."""

    id: str
    userId: str
    title: str
    messages: list[ChatMessageResponse]
    createdAt: int
    lastUpdatedAt: int


class ChatSessionListResponse(BaseModel):
    """Response for list of chat sessions."""

    sessions: list[ChatSessionResponse]
    count: int


class ChatMessageRequest(BaseModel):
    """A new message to the tutor within a session."""

    text: str = Field(..., min_length=1, max_length=8000)
    isAudio: bool = False


class ChatTurnResponse(BaseModel):
    """Tutor reply plus the updated session."""

    reply: str
    session: ChatSessionResponse
    remaining_messages: int


# =============================================================================
# HEALTH SCHEMAS
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    provider: str = ""
    model: str = ""
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
