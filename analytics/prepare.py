from __future__ import annotations

"""Turn stored quiz results into an analysis DataFrame."""

from typing import Sequence

import pandas as pd

from storage.schema import QuizResult


def results_frame(results: Sequence[QuizResult]) -> pd.DataFrame:
    """Quiz results oldest first with a stable 'session_idx' column."""
    cols = ["id", "completed_at", "score", "total", "percentage", "duration_s", "category"]
    if not results:
        df = pd.DataFrame({c: pd.Series(dtype=object) for c in cols})
        df["session_idx"] = pd.Series(dtype="int64")
        return df
    df = pd.DataFrame([r.model_dump() for r in results], columns=cols)
    df["completed_at"] = pd.to_datetime(df["completed_at"], utc=True)
    df = df.sort_values(["completed_at", "id"], kind="stable").reset_index(drop=True)
    df["percentage"] = df["percentage"].astype("float32")
    df["session_idx"] = range(len(df))
    return df
