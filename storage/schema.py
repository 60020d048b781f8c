from __future__ import annotations

"""Schema constants and Pydantic models for the Parquet-backed question store."""

from datetime import datetime, timezone
from typing import Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# --- Constants ---

OPTION_LETTERS = ("A", "B", "C", "D")

QUESTIONS = "questions"
PERFORMANCE = "performance"
QUIZ_RESULTS = "quiz_results"
SETTINGS = "settings"
COLLECTIONS = (QUESTIONS, PERFORMANCE, QUIZ_RESULTS, SETTINGS)

LAST_QUIZ_TIME = "last_quiz_time"
NEXT_QUIZ_TIME = "next_quiz_time"

_UTC = pd.DatetimeTZDtype(tz="UTC")

DTYPES = {
    QUESTIONS: {
        "id": "Int64",
        "text": "string",
        "option_a": "string",
        "option_b": "string",
        "option_c": "string",
        "option_d": "string",
        "correct": "string",
        "explanation": "string",
        "category": "string",
        "created_at": _UTC,
        "last_asked": _UTC,
    },
    PERFORMANCE: {
        "question_id": "Int64",
        "times_asked": "Int64",
        "times_correct": "Int64",
        "last_attempt": _UTC,
    },
    QUIZ_RESULTS: {
        "id": "Int64",
        "completed_at": _UTC,
        "score": "Int64",
        "total": "Int64",
        "percentage": "Int64",
        "duration_s": "float64",
        "category": "string",
    },
    SETTINGS: {
        "key": "string",
        "value": "string",
    },
}

KEYS = {
    QUESTIONS: "id",
    PERFORMANCE: "question_id",
    QUIZ_RESULTS: "id",
    SETTINGS: "key",
}


def ensure_utc(v: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to aware UTC; naive values are taken to be UTC."""
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


def percent(part: int, whole: int) -> int:
    """Integer percentage rounded half up; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return int(100 * part / whole + 0.5)


# --- Pydantic models ---

class QuestionDraft(BaseModel):
    """A candidate question as supplied by an importer (no id yet)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    text: str = Field(min_length=1)
    option_a: str = Field(min_length=1)
    option_b: str = Field(min_length=1)
    option_c: str = Field(min_length=1)
    option_d: str = Field(min_length=1)
    correct: str
    explanation: Optional[str] = None
    category: Optional[str] = None

    @field_validator("correct")
    @classmethod
    def _correct_letter(cls, v: str) -> str:
        letter = v.strip().upper()
        if letter not in OPTION_LETTERS:
            raise ValueError("correct must be one of A, B, C, D")
        return letter

    @field_validator("explanation", "category")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v

    def options(self) -> dict[str, str]:
        return {
            "A": self.option_a,
            "B": self.option_b,
            "C": self.option_c,
            "D": self.option_d,
        }


class Question(QuestionDraft):
    id: int = Field(ge=1)
    created_at: datetime
    last_asked: Optional[datetime] = None

    @field_validator("created_at", "last_asked")
    @classmethod
    def _ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class PerformanceRecord(BaseModel):
    question_id: int
    times_asked: int = Field(default=0, ge=0)
    times_correct: int = Field(default=0, ge=0)
    last_attempt: Optional[datetime] = None

    @model_validator(mode="after")
    def _correct_le_asked(self) -> "PerformanceRecord":
        if self.times_correct > self.times_asked:
            raise ValueError("times_correct must be <= times_asked")
        return self

    @field_validator("last_attempt")
    @classmethod
    def _ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def accuracy(self) -> Optional[float]:
        if self.times_asked == 0:
            return None
        return self.times_correct / self.times_asked


class QuestionWithPerformance(BaseModel):
    """A question paired with its performance; never-asked questions carry a zero record."""

    question: Question
    performance: PerformanceRecord

    @property
    def id(self) -> int:
        return self.question.id


class QuizResult(BaseModel):
    id: Optional[int] = None
    completed_at: datetime
    score: int = Field(ge=0)
    total: int = Field(gt=0)
    percentage: int = Field(default=0, ge=0, le=100)
    duration_s: float = Field(default=0.0, ge=0)
    category: Optional[str] = None

    @model_validator(mode="after")
    def _score_le_total(self) -> "QuizResult":
        if self.score > self.total:
            raise ValueError("score must be <= total")
        self.percentage = percent(self.score, self.total)
        return self

    @field_validator("completed_at")
    @classmethod
    def _ensure_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class ProgressStats(BaseModel):
    total_questions: int = 0
    total_asked: int = 0
    total_correct: int = 0
    questions_seen: int = 0
    coverage: int = 0
    accuracy: int = 0
    quizzes_taken: int = 0
    quiz_history: list[QuizResult] = Field(default_factory=list)

    @property
    def readiness(self) -> int:
        return min(100, int(self.accuracy * 0.6 + self.coverage * 0.4 + 0.5))
