from __future__ import annotations

"""CSV import collaborator: turns question spreadsheets into store records.

Expected column order (header row required, names are not checked):
Question, OptionA, OptionB, OptionC, OptionD, Correct Answer, Explanation.
Parsing problems in a row are left to the store's per-record validation so a
bad row is counted rather than aborting the file.
"""

import csv
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import pandas as pd

from storage.store import PersistentStore

from ..errors import ValidationError

logger = logging.getLogger(__name__)

FIELDS = ["text", "option_a", "option_b", "option_c", "option_d", "correct", "explanation"]

SAMPLE_ROWS = [
    ["Question", "OptionA", "OptionB", "OptionC", "OptionD", "Correct Answer", "Explanation"],
    [
        "What is the capital of France?",
        "Paris",
        "London",
        "Berlin",
        "Madrid",
        "A",
        "Paris is the capital and most populous city of France.",
    ],
    [
        "Which planet is known as the Red Planet?",
        "Mars",
        "Venus",
        "Jupiter",
        "Saturn",
        "A",
        "Mars appears red due to iron oxide on its surface.",
    ],
    ["What is 2 + 2?", "3", "4", "5", "6", "B", "Basic arithmetic addition."],
]


def read_rows(path: Path | str, category: Optional[str] = None) -> Iterator[Dict[str, Any]]:
    """Yield candidate question dicts from a CSV file, one per data row."""
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False, skip_blank_lines=True)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise ValidationError(f"Cannot read {path}: {exc}") from exc
    for values in df.itertuples(index=False, name=None):
        row: Dict[str, Any] = {}
        for i, name in enumerate(FIELDS):
            row[name] = values[i].strip() if i < len(values) and values[i] is not None else ""
        # Missing answer column defaults to A; required text fields are validated downstream.
        row["correct"] = row["correct"] or "A"
        row["category"] = category
        yield row


def import_csv(store: PersistentStore, path: Path | str, category: Optional[str] = None) -> Dict[str, Any]:
    """Import one CSV file; returns the store's {"added", "errors", "problems"} summary."""
    summary = store.add_questions(read_rows(path, category))
    logger.info("%s: imported %d questions, %d rejected", path, summary["added"], summary["errors"])
    return summary


def import_files(store: PersistentStore, paths: List[Path | str], category: Optional[str] = None) -> Dict[str, Any]:
    """Import several files; one unreadable file does not stop the others."""
    totals: Dict[str, Any] = {"added": 0, "errors": 0, "files": {}}
    for p in paths:
        try:
            summary = import_csv(store, p, category)
        except ValidationError as exc:
            logger.error("%s", exc)
            totals["files"][str(p)] = {"error": str(exc)}
            continue
        totals["added"] += summary["added"]
        totals["errors"] += summary["errors"]
        totals["files"][str(p)] = summary
    return totals


def write_sample_csv(out_path: Path | str) -> Path:
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8", newline="") as f:
        csv.writer(f).writerows(SAMPLE_ROWS)
    return p
