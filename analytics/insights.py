from __future__ import annotations

"""Performance insights: difficulty, strengths/weaknesses, score prediction, recommendations."""

from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from storage.schema import PerformanceRecord, ProgressStats, QuizResult

from .config import AnalyticsConfig

_PRIORITY_ORDER = {"high": 1, "medium": 2, "low": 3}


def difficulty(records: Sequence[PerformanceRecord]) -> str:
    """Classify the bank as Easy / Medium / Hard from mean per-question accuracy.

    Only asked questions count; with none asked the bank is "Medium".
    """
    acc = np.array([r.times_correct / r.times_asked for r in records if r.times_asked > 0], dtype="float64")
    if acc.size == 0:
        return "Medium"
    avg = float(acc.mean()) * 100
    if avg >= 80:
        return "Easy"
    if avg >= 50:
        return "Medium"
    return "Hard"


def get_insights(results: Sequence[QuizResult], cfg: Optional[AnalyticsConfig] = None) -> Dict[str, List[str]]:
    """Strong points, weak areas and suggestions from quiz history (newest first)."""
    cfg = cfg or AnalyticsConfig()
    insights: Dict[str, List[str]] = {"weak_areas": [], "strong_points": [], "suggestions": []}
    if not results:
        insights["suggestions"].append("Take your first quiz to get insights!")
        return insights

    avg = float(np.mean([r.percentage for r in results]))
    if avg >= 80:
        insights["strong_points"].append("Excellent overall performance")
        insights["suggestions"].append("Maintain consistency with regular practice")
    elif avg >= 60:
        insights["strong_points"].append("Good progress")
        insights["suggestions"].append("Focus on improving weak areas")
    else:
        insights["weak_areas"].append("Overall performance needs improvement")
        insights["suggestions"].append("Review explanations and practice more")

    recent = [r.percentage for r in results[:3]]
    if len(recent) >= 2 and max(recent) - min(recent) > cfg.inconsistency_spread:
        insights["weak_areas"].append("Inconsistent performance")
        insights["suggestions"].append("Practice regularly for consistent results")
    return insights


def predict_score(results: Sequence[QuizResult], cfg: Optional[AnalyticsConfig] = None) -> int:
    """Weighted average of the newest quiz percentages; 50 with no history.

    Weights are renormalised over the quizzes available, so a short history
    still predicts on the 0-100 scale.
    """
    cfg = cfg or AnalyticsConfig()
    if not results:
        return 50
    weights = np.asarray(cfg.prediction_weights, dtype="float64")
    recent = np.asarray([r.percentage for r in results[: len(weights)]], dtype="float64")
    w = weights[: recent.size]
    if w.sum() <= 0:
        return int(round(float(recent.mean())))
    return int(float(np.dot(recent, w) / w.sum()) + 0.5)


def recommendations(stats: ProgressStats) -> List[Dict[str, Any]]:
    """Prioritised study recommendations (high first)."""
    recs: List[Dict[str, Any]] = []
    if stats.coverage < 50:
        recs.append(
            {
                "priority": "high",
                "message": f"Increase question bank coverage (currently {stats.coverage}%)",
                "action": "Take more quizzes to see all questions",
            }
        )
    if stats.accuracy < 60:
        recs.append(
            {
                "priority": "high",
                "message": f"Improve accuracy (currently {stats.accuracy}%)",
                "action": "Review explanations for incorrect answers",
            }
        )
    if stats.quizzes_taken < 5:
        recs.append(
            {
                "priority": "medium",
                "message": "Practice more regularly",
                "action": "Take at least one quiz daily",
            }
        )
    if stats.coverage >= 80 and stats.accuracy >= 80:
        recs.append(
            {
                "priority": "low",
                "message": "Excellent progress!",
                "action": "Maintain with regular practice",
            }
        )
    recs.sort(key=lambda r: _PRIORITY_ORDER[r["priority"]])
    return recs
