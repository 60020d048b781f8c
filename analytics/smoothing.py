from __future__ import annotations

"""EWMA smoothing of quiz scores in completion order."""

import pandas as pd


def ewma_by_session(
    df: pd.DataFrame,
    value_col: str,
    span: int,
    group_cols: list[str] | None = None,
) -> pd.DataFrame:
    """Add ``<value_col>_smooth``: EWMA over quiz order, per group when group_cols is given.

    Rows come back sorted by session_idx.
    """
    out = df.sort_values("session_idx").copy()
    col = f"{value_col}_smooth"
    values = out[value_col].astype("float64")
    if out.empty:
        out[col] = pd.Series(dtype="float32")
    elif group_cols:
        keys = [out[c] for c in group_cols]
        out[col] = values.groupby(keys, dropna=False).transform(lambda s: s.ewm(span=span).mean()).astype("float32")
    else:
        out[col] = values.ewm(span=span).mean().astype("float32")
    return out


def score_trend(df: pd.DataFrame, *, span: int, category: str | None = None) -> pd.DataFrame:
    """Percentages smoothed over one category's quizzes only (all quizzes when category is None)."""
    if category is not None:
        df = df[(df["category"].astype("string") == category).fillna(False).astype(bool)]
    return ewma_by_session(df, value_col="percentage", span=span)
