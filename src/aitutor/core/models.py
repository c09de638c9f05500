"""Learner records.

Plain dataclasses for the records kept in local state. ``to_dict`` and
``from_dict`` use the camelCase keys the web client stores, so state
files and API payloads share one shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Literal

from aitutor.utils.text_utils import now_ms

# =============================================================================
# ENUMS
# =============================================================================


class Difficulty(str, Enum):
    """Quiz difficulty levels."""

    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class LearningStyle(str, Enum):
    """Preferred learning style of a user."""

    VISUAL = "Visual"
    AUDITORY = "Auditory"
    KINESTHETIC = "Kinesthetic"


SubscriptionTier = Literal["free", "pro"]
SubscriptionStatus = Literal["active", "inactive", "past_due", "canceled"]
Theme = Literal["light", "dark"]
ChatRole = Literal["user", "model"]


def today_str(today: date | None = None) -> str:
    """ISO date used for usage resets and streaks."""
    return (today or date.today()).isoformat()


# =============================================================================
# USER
# =============================================================================


@dataclass
class UsageTracking:
    """Daily message counter."""

    daily_messages: int = 0
    last_reset_date: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "daily_messages": self.daily_messages,
            "last_reset_date": self.last_reset_date,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UsageTracking:
        return cls(
            daily_messages=int(data.get("daily_messages", 0)),
            last_reset_date=data.get("last_reset_date", ""),
        )


@dataclass
class UserProfile:
    """A learner's profile, subscription and statistics."""

    id: str
    first_name: str
    last_name: str
    email: str
    name: str = ""
    avatar: str = ""
    level: int = 1
    xp: int = 0
    streak: int = 1
    last_active_date: str | None = None
    learning_style: LearningStyle = LearningStyle.VISUAL
    interests: list[str] = field(default_factory=list)
    theme: Theme = "light"
    subscription_tier: SubscriptionTier = "free"
    subscription_status: SubscriptionStatus = "active"
    usage: UsageTracking | None = field(default_factory=UsageTracking)
    lessons_completed: int = 0
    quiz_total_questions: int = 0
    quiz_total_correct: int = 0

    def __post_init__(self):
        if not self.name:
            self.name = f"{self.first_name} {self.last_name}".strip()

    @property
    def is_pro(self) -> bool:
        return self.subscription_tier == "pro"

    @property
    def quiz_accuracy(self) -> int:
        """Rounded percentage of correct quiz answers."""
        if self.quiz_total_questions <= 0:
            return 0
        return round(self.quiz_total_correct / self.quiz_total_questions * 100)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "name": self.name,
            "email": self.email,
            "avatar": self.avatar,
            "level": self.level,
            "xp": self.xp,
            "streak": self.streak,
            "lastActiveDate": self.last_active_date,
            "learningStyle": self.learning_style.value,
            "interests": list(self.interests),
            "theme": self.theme,
            "subscription_tier": self.subscription_tier,
            "subscription_status": self.subscription_status,
            "usage": self.usage.to_dict() if self.usage is not None else None,
            "lessonsCompleted": self.lessons_completed,
            "quizTotalQuestions": self.quiz_total_questions,
            "quizTotalCorrect": self.quiz_total_correct,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserProfile:
        """Rebuild a profile, tolerating missing fields from older state."""
        usage_data = data.get("usage")
        try:
            learning_style = LearningStyle(data.get("learningStyle", "Visual"))
        except ValueError:
            learning_style = LearningStyle.VISUAL

        return cls(
            id=data["id"],
            first_name=data.get("firstName", ""),
            last_name=data.get("lastName", ""),
            email=data.get("email", ""),
            name=data.get("name", ""),
            avatar=data.get("avatar", ""),
            level=int(data.get("level") or 1),
            xp=int(data.get("xp") or 0),
            streak=int(data.get("streak") or 1),
            last_active_date=data.get("lastActiveDate"),
            learning_style=learning_style,
            interests=list(data.get("interests") or []),
            theme=data.get("theme") or "light",
            subscription_tier=data.get("subscription_tier") or "free",
            subscription_status=data.get("subscription_status") or "active",
            usage=UsageTracking.from_dict(usage_data) if usage_data is not None else None,
            lessons_completed=int(data.get("lessonsCompleted") or 0),
            quiz_total_questions=int(data.get("quizTotalQuestions") or 0),
            quiz_total_correct=int(data.get("quizTotalCorrect") or 0),
        )


def create_default_user(
    email: str,
    first_name: str,
    last_name: str,
    user_id: str | None = None,
    today: date | None = None,
) -> UserProfile:
    """Build a fresh free-tier profile for a new learner."""
    return UserProfile(
        id=user_id or f"user-{now_ms()}",
        first_name=first_name,
        last_name=last_name,
        email=email,
        avatar=f"https://api.dicebear.com/7.x/avataaars/svg?seed={email}",
        last_active_date=today_str(today),
        usage=UsageTracking(daily_messages=0, last_reset_date=today_str(today)),
    )


# =============================================================================
# FLASHCARDS
# =============================================================================


@dataclass
class Flashcard:
    """A single two-sided card."""

    id: str
    front: str
    back: str
    mastered: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "front": self.front,
            "back": self.back,
            "mastered": self.mastered,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Flashcard:
        return cls(
            id=data["id"],
            front=data.get("front", ""),
            back=data.get("back", ""),
            mastered=bool(data.get("mastered", False)),
        )


@dataclass
class FlashcardSet:
    """An ordered deck of flashcards, optionally inside a folder."""

    id: str
    title: str = "Untitled Set"
    description: str = ""
    cards: list[Flashcard] = field(default_factory=list)
    created_at: int = field(default_factory=now_ms)
    folder_id: str | None = None

    @property
    def mastered_count(self) -> int:
        return sum(1 for card in self.cards if card.mastered)

    def get_card(self, card_id: str) -> Flashcard | None:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "cards": [c.to_dict() for c in self.cards],
            "createdAt": self.created_at,
            "folderId": self.folder_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlashcardSet:
        return cls(
            id=data["id"],
            title=data.get("title") or "Untitled Set",
            description=data.get("description", ""),
            cards=[Flashcard.from_dict(c) for c in data.get("cards", [])],
            created_at=int(data.get("createdAt") or now_ms()),
            folder_id=data.get("folderId"),
        )


@dataclass
class Folder:
    """A named group of flashcard sets."""

    id: str
    name: str
    description: str = ""
    tags: list[str] = field(default_factory=list)
    set_ids: list[str] = field(default_factory=list)
    created_at: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "tags": list(self.tags),
            "setIds": list(self.set_ids),
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Folder:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            description=data.get("description", ""),
            tags=list(data.get("tags") or []),
            set_ids=list(data.get("setIds") or []),
            created_at=int(data.get("createdAt") or now_ms()),
        )


# =============================================================================
# CHAT
# =============================================================================


@dataclass
class ChatMessage:
    """One turn of a tutor conversation."""

    id: str
    role: ChatRole
    text: str
    timestamp: int = field(default_factory=now_ms)
    is_audio: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "text": self.text,
            "timestamp": self.timestamp,
        }
        if self.is_audio:
            result["isAudio"] = True
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatMessage:
        return cls(
            id=data.get("id") or f"msg-{data.get('timestamp', now_ms())}",
            role="model" if data.get("role") == "model" else "user",
            text=str(data.get("text") or ""),
            timestamp=int(data.get("timestamp") or now_ms()),
            is_audio=bool(data.get("isAudio", False)),
        )


@dataclass
class ChatSession:
    """A titled conversation with the tutor."""

    id: str
    user_id: str
    title: str
    messages: list[ChatMessage] = field(default_factory=list)
    created_at: int = field(default_factory=now_ms)
    last_updated_at: int = field(default_factory=now_ms)

    def to_history(self) -> list[dict[str, Any]]:
        """History in the ``{role, parts: [{text}]}`` shape /api/chat accepts."""
        return [{"role": m.role, "parts": [{"text": m.text}]} for m in self.messages]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "createdAt": self.created_at,
            "lastUpdatedAt": self.last_updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatSession:
        return cls(
            id=data["id"],
            user_id=data.get("userId", ""),
            title=data.get("title", ""),
            messages=[ChatMessage.from_dict(m) for m in data.get("messages", [])],
            created_at=int(data.get("createdAt") or now_ms()),
            last_updated_at=int(data.get("lastUpdatedAt") or now_ms()),
        )


# =============================================================================
# QUIZ
# =============================================================================


@dataclass
class QuizQuestion:
    """A multiple-choice question with one correct option."""

    id: str
    question: str
    options: list[str]
    correct_index: int
    explanation: str = ""

    def is_correct(self, answer_index: int | None) -> bool:
        return answer_index is not None and answer_index == self.correct_index

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "question": self.question,
            "options": list(self.options),
            "correctIndex": self.correct_index,
            "explanation": self.explanation,
        }


@dataclass
class Quiz:
    """A generated quiz and, once taken, its score."""

    id: str
    title: str
    topic: str
    questions: list[QuizQuestion] = field(default_factory=list)
    completed: bool = False
    score: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "topic": self.topic,
            "questions": [q.to_dict() for q in self.questions],
            "completed": self.completed,
        }
        if self.score is not None:
            result["score"] = self.score
        return result
