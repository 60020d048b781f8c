from .config import AnalyticsConfig
from .insights import difficulty, get_insights, predict_score, recommendations
from .prepare import results_frame
from .smoothing import ewma_by_session, score_trend
from .plots import plot_trend

__all__ = [
    "AnalyticsConfig",
    "difficulty",
    "get_insights",
    "predict_score",
    "recommendations",
    "results_frame",
    "ewma_by_session",
    "score_trend",
    "plot_trend",
]
