from __future__ import annotations

"""Matplotlib chart of quiz scores over time."""

import os
from pathlib import Path
from typing import Optional

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402

# Result-message band edges, drawn as faint guides on percentage charts
BANDS = (40, 60, 75, 90)


def plot_trend(
    df: pd.DataFrame,
    *,
    category: Optional[str] = None,
    value_col: str = "percentage",
    save_path: Optional[str | os.PathLike[str]] = None,
) -> bool:
    """Per-quiz scores as dots, EWMA as a line when ``<value_col>_smooth`` exists.

    Returns False (and draws nothing) when no quiz matches.
    """
    rows = df if category is None else df[(df["category"].astype("string") == category).fillna(False).astype(bool)]
    if rows.empty:
        return False
    rows = rows.sort_values("session_idx")
    x = rows["session_idx"] + 1

    fig, ax = plt.subplots(figsize=(7, 4))
    ax.scatter(x, rows[value_col], s=18, label="quiz")
    smooth_col = f"{value_col}_smooth"
    if smooth_col in rows.columns:
        ax.plot(x, rows[smooth_col], linewidth=2, label="EWMA")
        last = float(rows[smooth_col].iloc[-1])
        ax.annotate(f"{last:.0f}", (x.iloc[-1], last), textcoords="offset points", xytext=(6, 0))
    if value_col == "percentage":
        for edge in BANDS:
            ax.axhline(edge, color="grey", linewidth=0.5, alpha=0.4)
        ax.set_ylim(0, 100)
    ax.set_xlabel("Quiz #")
    ax.set_ylabel(value_col)
    ax.set_title(f"Score trend: {category}" if category else "Score trend")
    ax.legend(loc="lower right")
    if save_path:
        Path(save_path).parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(save_path, bbox_inches="tight", dpi=150)
    plt.close(fig)
    return True
