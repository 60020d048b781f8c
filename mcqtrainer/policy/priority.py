from __future__ import annotations

"""Priority scoring: how urgently a question should be asked again."""

from typing import Any, Dict, Optional, Protocol

from pydantic import BaseModel, Field


class ScoringConfig(BaseModel):
    """Named, overridable constants of the priority policy.

    - never_asked: score for a question with no attempts (highest)
    - never_correct: score after exactly one wrong attempt
    - low_accuracy_weight: scale applied to (1 - accuracy)
    - frequency_penalty / frequency_cap: per-attempt deduction and its ceiling
    - min_score: floor applied before the never-correct boost
    - never_correct_boost: added when every attempt so far was wrong
    """

    never_asked: float = Field(100.0, ge=0)
    never_correct: float = Field(90.0, ge=0)
    low_accuracy_weight: float = Field(60.0, ge=0)
    frequency_cap: float = Field(20.0, ge=0)
    frequency_penalty: float = Field(2.0, ge=0)
    min_score: float = Field(10.0, ge=0)
    never_correct_boost: float = Field(20.0, ge=0)


class AttemptCounts(Protocol):
    @property
    def times_asked(self) -> int: ...
    @property
    def times_correct(self) -> int: ...


class PriorityScorer:
    """Maps a performance record to a priority score; higher = more urgent."""

    def __init__(self, config: Optional[ScoringConfig] = None) -> None:
        self.config = config or ScoringConfig()

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "PriorityScorer":
        return cls(ScoringConfig(**(cfg.get("scoring") or {})))

    def score(self, perf: AttemptCounts) -> float:
        c = self.config
        asked = int(perf.times_asked)
        correct = int(perf.times_correct)
        if asked == 0:
            return c.never_asked
        if asked == 1 and correct == 0:
            return c.never_correct

        accuracy = correct / asked
        score = (1 - accuracy) * c.low_accuracy_weight
        score -= min(c.frequency_cap, asked * c.frequency_penalty)
        score = max(c.min_score, score)
        if correct == 0:
            score += c.never_correct_boost
        return score

    __call__ = score
