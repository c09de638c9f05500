"""Tests for quiz generation and grading (F2)."""

import pytest

from aitutor.core.models import Difficulty, QuizQuestion
from aitutor.core.quiz_generator import (
    QuizGenerationError,
    build_quiz,
    complete_quiz,
    generate_quiz,
    grade_quiz,
)


def _question(correct_index: int = 0) -> QuizQuestion:
    return QuizQuestion(id="q-1", question="?", options=["a", "b", "c"], correct_index=correct_index)


class TestGenerateQuiz:
    """Tests for generate_quiz."""

    def test_returns_questions(self, mock_llm_client, mock_quiz_response):
        mock_llm_client.simple_json.return_value = mock_quiz_response

        questions = generate_quiz("WWII", mock_llm_client, difficulty=Difficulty.BEGINNER)

        assert len(questions) == 2
        assert questions[0].question == "When did WWII end?"
        assert questions[0].correct_index == 1
        assert questions[0].explanation == "Japan surrendered in 1945."
        assert questions[0].id.startswith("q-")

    def test_prompt_mentions_difficulty(self, mock_llm_client, mock_quiz_response):
        mock_llm_client.simple_json.return_value = mock_quiz_response

        generate_quiz("WWII", mock_llm_client, difficulty=Difficulty.ADVANCED, n=3)

        user_message = mock_llm_client.simple_json.call_args.kwargs["user_message"]
        assert 'Create a Advanced level multiple-choice quiz with 3 questions about "WWII".' in user_message

    def test_string_correct_index_coerced(self, mock_llm_client, mock_quiz_response):
        mock_llm_client.simple_json.return_value = mock_quiz_response

        questions = generate_quiz("WWII", mock_llm_client)

        assert questions[1].correct_index == 0

    def test_out_of_range_index_clamped(self, mock_llm_client):
        mock_llm_client.simple_json.return_value = {
            "questions": [{"question": "Q", "options": ["a", "b"], "correctIndex": 7}]
        }

        assert generate_quiz("T", mock_llm_client)[0].correct_index == 1

    def test_missing_index_defaults_to_first(self, mock_llm_client):
        mock_llm_client.simple_json.return_value = {
            "questions": [{"question": "Q", "options": ["a", "b"]}]
        }

        assert generate_quiz("T", mock_llm_client)[0].correct_index == 0

    def test_drops_malformed_questions(self, mock_llm_client):
        mock_llm_client.simple_json.return_value = {
            "questions": [
                {"question": "", "options": ["a", "b"], "correctIndex": 0},
                {"question": "One option", "options": ["a"], "correctIndex": 0},
                {"question": "No options"},
                {"question": "Good", "options": ["a", "b"], "correctIndex": 1},
            ]
        }

        questions = generate_quiz("T", mock_llm_client)

        assert [q.question for q in questions] == ["Good"]

    def test_truncates_to_n(self, mock_llm_client, mock_quiz_response):
        mock_llm_client.simple_json.return_value = mock_quiz_response

        assert len(generate_quiz("WWII", mock_llm_client, n=1)) == 1

    def test_no_questions(self, mock_llm_client):
        mock_llm_client.simple_json.return_value = {"questions": []}

        with pytest.raises(QuizGenerationError):
            generate_quiz("T", mock_llm_client)

    def test_missing_questions_array(self, mock_llm_client):
        mock_llm_client.simple_json.return_value = {"quiz": "nope"}

        with pytest.raises(QuizGenerationError):
            generate_quiz("T", mock_llm_client)

    def test_empty_topic(self, mock_llm_client):
        with pytest.raises(ValueError):
            generate_quiz(" ", mock_llm_client)


class TestGrading:
    """Tests for grade_quiz and complete_quiz."""

    def test_grade_counts_correct(self):
        questions = [_question(0), _question(1), _question(2)]

        grade = grade_quiz(questions, [0, 2, 2])

        assert grade.score == 2
        assert grade.total == 3
        assert grade.results == [True, False, True]

    def test_missing_and_skipped_answers_are_wrong(self):
        questions = [_question(0), _question(1), _question(2)]

        grade = grade_quiz(questions, [None, 1])

        assert grade.results == [False, True, False]

    def test_percentage(self):
        grade = grade_quiz([_question(0), _question(0)], [0, 1])
        assert grade.percentage == 0.5

    def test_complete_quiz_marks_completed(self):
        quiz = build_quiz("Cells", [_question(1)], Difficulty.INTERMEDIATE)

        grade = complete_quiz(quiz, [1])

        assert quiz.completed is True
        assert quiz.score == 1
        assert grade.score == 1
        assert quiz.title == "Cells (Intermediate)"
