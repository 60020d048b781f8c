from .schema import (
    COLLECTIONS,
    DTYPES,
    LAST_QUIZ_TIME,
    NEXT_QUIZ_TIME,
    OPTION_LETTERS,
    PerformanceRecord,
    ProgressStats,
    Question,
    QuestionDraft,
    QuestionWithPerformance,
    QuizResult,
)
from .store import PersistentStore

__all__ = [
    "COLLECTIONS",
    "DTYPES",
    "LAST_QUIZ_TIME",
    "NEXT_QUIZ_TIME",
    "OPTION_LETTERS",
    "PerformanceRecord",
    "ProgressStats",
    "Question",
    "QuestionDraft",
    "QuestionWithPerformance",
    "QuizResult",
    "PersistentStore",
]
