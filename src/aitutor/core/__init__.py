"""Core business logic.

Modules:
- models: learner records (profile, flashcards, folders, chats, quizzes)
- tutor: tutor chat replies
- flashcard_generator: flashcard and card-answer generation
- quiz_generator: quiz generation and scoring
- usage: free-tier limits, streaks, XP
- user_repository / library_repository / chat_repository: JSON state
"""

__all__ = [
    "models",
    "tutor",
    "flashcard_generator",
    "quiz_generator",
    "usage",
    "user_repository",
    "library_repository",
    "chat_repository",
]
