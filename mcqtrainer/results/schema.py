from __future__ import annotations

"""Graded outcome dataclasses returned to the UI after a submit."""

from dataclasses import dataclass, field
from typing import List, Optional

from storage.schema import QuizResult


@dataclass(frozen=True)
class QuestionOutcome:
    question_id: int
    text: str
    chosen: Optional[str]
    correct_option: str
    is_correct: bool
    explanation: Optional[str] = None

    @property
    def answered(self) -> bool:
        return self.chosen is not None


@dataclass
class SubmissionReport:
    result: QuizResult
    outcomes: List[QuestionOutcome] = field(default_factory=list)
    timed_out: bool = False

    @property
    def correct(self) -> int:
        return sum(1 for o in self.outcomes if o.is_correct)

    @property
    def incorrect(self) -> int:
        return len(self.outcomes) - self.correct

    @property
    def unanswered(self) -> int:
        return sum(1 for o in self.outcomes if not o.answered)
