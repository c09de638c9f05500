"""Quiz generation module.

Responsibilities:
- Generate multiple-choice quizzes for a topic and difficulty using the LLM
- Normalize questions (integer correctIndex inside the options range)
- Score a set of answers

Output structure (JSON):
- {"questions": [{"question", "options", "correctIndex", "explanation"}]}
- Question ids: q-{epoch_ms}-{index}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from aitutor.core.models import Difficulty, Quiz, QuizQuestion
from aitutor.llm.client import LLMClient
from aitutor.prompts.registry import get_prompt
from aitutor.utils.text_utils import make_id, now_ms

logger = structlog.get_logger(__name__)

DEFAULT_QUESTION_COUNT = 5
MIN_OPTIONS = 2


class QuizGenerationError(Exception):
    """Error during quiz generation."""

    pass


@dataclass
class QuizGrade:
    """Outcome of answering a quiz."""

    score: int
    total: int
    results: list[bool] = field(default_factory=list)

    @property
    def percentage(self) -> float:
        return self.score / self.total if self.total else 0.0


def _coerce_correct_index(value: Any, question_id: str, n_options: int) -> int:
    """Turn the LLM's correctIndex into a valid option index."""
    if isinstance(value, bool):
        index = int(value)
    elif isinstance(value, int):
        index = value
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        index = int(value.strip())
    else:
        logger.warning("quiz_correct_index_missing", question_id=question_id, value=value)
        index = 0

    max_valid_index = n_options - 1
    if index < 0 or index > max_valid_index:
        logger.warning(
            "invalid_correct_index",
            question_id=question_id,
            correct_index=index,
            max_valid_index=max_valid_index,
        )
        index = max(0, min(index, max_valid_index))
    return index


def _parse_questions_from_llm(raw_data: dict[str, Any], n: int) -> list[QuizQuestion]:
    """Parse questions from LLM response."""
    raw_questions = raw_data.get("questions")
    if not isinstance(raw_questions, list):
        raise QuizGenerationError("LLM response has no 'questions' array")

    stamp = now_ms()
    questions: list[QuizQuestion] = []

    for item in raw_questions:
        if not isinstance(item, dict):
            continue

        question_id = f"q-{stamp}-{len(questions)}"
        text = str(item.get("question") or "").strip()
        options = item.get("options")

        if not text or not isinstance(options, list):
            logger.warning("quiz_question_skipped", question_id=question_id)
            continue

        options = [str(o).strip() for o in options if str(o).strip()]
        if len(options) < MIN_OPTIONS:
            logger.warning(
                "quiz_question_too_few_options",
                question_id=question_id,
                options=len(options),
            )
            continue

        questions.append(
            QuizQuestion(
                id=question_id,
                question=text,
                options=options,
                correct_index=_coerce_correct_index(
                    item.get("correctIndex"), question_id, len(options)
                ),
                explanation=str(item.get("explanation") or "").strip(),
            )
        )

    return questions[:n]


def generate_quiz(
    topic: str,
    client: LLMClient,
    difficulty: Difficulty = Difficulty.INTERMEDIATE,
    n: int = DEFAULT_QUESTION_COUNT,
) -> list[QuizQuestion]:
    """Generate a multiple-choice quiz.

    Args:
        topic: Subject of the quiz
        client: Configured LLM client
        difficulty: Beginner, Intermediate or Advanced
        n: Number of questions (default 5)

    Returns:
        Normalized questions

    Raises:
        ValueError: If topic is empty
        QuizGenerationError: If the LLM returns no usable questions
        LLMError: If the provider call fails
    """
    topic = topic.strip()
    if not topic:
        raise ValueError("Topic must not be empty")

    raw_result = client.simple_json(
        system_prompt=get_prompt("quiz/system"),
        user_message=get_prompt(
            "quiz/generate",
            topic=topic,
            difficulty=difficulty.value,
            count=n,
        ),
        temperature=0.5,
    )
    questions = _parse_questions_from_llm(raw_result, n)

    if not questions:
        raise QuizGenerationError(f"No quiz questions generated for '{topic}'")

    logger.info(
        "quiz_generated",
        topic=topic,
        difficulty=difficulty.value,
        count=len(questions),
        provider=client.config.provider,
    )
    return questions


def build_quiz(topic: str, questions: list[QuizQuestion], difficulty: Difficulty) -> Quiz:
    """Wrap generated questions into a Quiz record."""
    return Quiz(
        id=make_id("quiz"),
        title=f"{topic} ({difficulty.value})",
        topic=topic,
        questions=questions,
    )


def grade_quiz(questions: list[QuizQuestion], answers: list[int | None]) -> QuizGrade:
    """Score answers (option indexes, None for skipped) against the questions.

    Missing trailing answers count as wrong.
    """
    results = []
    for i, question in enumerate(questions):
        answer = answers[i] if i < len(answers) else None
        results.append(question.is_correct(answer))

    return QuizGrade(score=sum(results), total=len(questions), results=results)


def complete_quiz(quiz: Quiz, answers: list[int | None]) -> QuizGrade:
    """Grade a quiz and mark it completed with its score."""
    grade = grade_quiz(quiz.questions, answers)
    quiz.completed = True
    quiz.score = grade.score
    return grade
