from __future__ import annotations

"""One quiz attempt: sampled questions, in-progress answers and the countdown.

A session is ``active`` until it is submitted; there is no pause/resume.
Nothing here touches storage, so an abandoned session leaves no trace.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Literal, Optional
from uuid import uuid4

from storage.schema import OPTION_LETTERS, Question, ensure_utc

from ..errors import QuizError, ValidationError
from ..results.schema import QuestionOutcome

SessionState = Literal["active", "submitted"]


@dataclass
class QuizSession:
    questions: List[Question]
    started_at: datetime
    time_limit: timedelta = timedelta(seconds=600)
    category: Optional[str] = None
    answers: Dict[int, str] = field(default_factory=dict)
    index: int = 0
    state: SessionState = "active"
    session_id: str = field(default_factory=lambda: str(uuid4()))

    def __post_init__(self) -> None:
        self.started_at = ensure_utc(self.started_at)
        self._by_id: Dict[int, Question] = {q.id: q for q in self.questions}

    @property
    def question_ids(self) -> List[int]:
        return [q.id for q in self.questions]

    @property
    def is_active(self) -> bool:
        return self.state == "active"

    # ---- navigation ----

    @property
    def current(self) -> Optional[Question]:
        if 0 <= self.index < len(self.questions):
            return self.questions[self.index]
        return None

    def go_to(self, index: int) -> Optional[Question]:
        if 0 <= index < len(self.questions):
            self.index = index
        return self.current

    def next(self) -> Optional[Question]:
        return self.go_to(self.index + 1)

    def previous(self) -> Optional[Question]:
        return self.go_to(self.index - 1)

    # ---- answers ----

    def record_answer(self, question_id: int, option: str, now: Optional[datetime] = None) -> None:
        """Record (or overwrite) the chosen option for a sampled question.

        With ``now`` given, answers are refused once the countdown has run out.
        """
        if not self.is_active:
            raise QuizError("Session already submitted")
        if now is not None and self.is_expired(now):
            raise QuizError("Time is up")
        if question_id not in self._by_id:
            raise QuizError(f"Question {question_id} is not part of this session")
        letter = str(option).strip().upper()
        if letter not in OPTION_LETTERS:
            raise ValidationError(f"Option must be one of {', '.join(OPTION_LETTERS)}, got {option!r}")
        self.answers[question_id] = letter

    def clear_answer(self, question_id: int) -> None:
        if self.is_active:
            self.answers.pop(question_id, None)

    def answer_for(self, question_id: int) -> Optional[str]:
        return self.answers.get(question_id)

    # ---- countdown ----

    @property
    def deadline(self) -> datetime:
        return self.started_at + self.time_limit

    def time_left(self, now: datetime) -> timedelta:
        return max(timedelta(0), self.deadline - ensure_utc(now))

    def is_expired(self, now: datetime) -> bool:
        return ensure_utc(now) >= self.deadline

    def progress(self) -> Dict[str, int]:
        return {
            "index": self.index,
            "answered": len(self.answers),
            "total": len(self.questions),
        }

    # ---- grading ----

    def grade(self) -> List[QuestionOutcome]:
        """Compare every sampled question with its recorded answer; unanswered is incorrect."""
        outcomes = []
        for q in self.questions:
            chosen = self.answers.get(q.id)
            outcomes.append(
                QuestionOutcome(
                    question_id=q.id,
                    text=q.text,
                    chosen=chosen,
                    correct_option=q.correct,
                    is_correct=chosen is not None and chosen == q.correct,
                    explanation=q.explanation,
                )
            )
        return outcomes

    def mark_submitted(self) -> None:
        self.state = "submitted"
