"""Human-in-the-loop training: questions, answers and learned patterns.

This sub-package provides:
- Knowledge-base and training records
- Question generation and prioritization
- Storage for pending questions
- Integration of answers into the pattern store
"""

from .models import (
    Annotation,
    MatchKind,
    Pattern,
    QuestionStatus,
    QuestionType,
    TrainingAnswer,
    TrainingQuestion,
)

__all__ = [
    "Annotation",
    "MatchKind",
    "Pattern",
    "QuestionStatus",
    "QuestionType",
    "TrainingAnswer",
    "TrainingQuestion",
]
