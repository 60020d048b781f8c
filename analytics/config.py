from __future__ import annotations

"""Analytics configuration (hyperparameters) using Pydantic."""

from typing import Any, Dict, List

from pydantic import BaseModel, Field


class AnalyticsConfig(BaseModel):
    """Hyperparameters for insights and smoothing.

    - smoothing_span: EWMA span in quizzes (>=1)
    - prediction_weights: weights for the newest quizzes, newest first
    - history_limit: how many recent quizzes feed insights
    - inconsistency_spread: percentage-point spread over the last three quizzes
      that counts as inconsistent
    """

    smoothing_span: int = Field(5, ge=1)
    prediction_weights: List[float] = Field(default_factory=lambda: [0.3, 0.25, 0.2, 0.15, 0.1])
    history_limit: int = Field(20, gt=0)
    inconsistency_spread: int = Field(30, ge=0)

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "AnalyticsConfig":
        section = cfg.get("analytics") or {}
        return cls(**{k: v for k, v in section.items() if k in cls.model_fields})
