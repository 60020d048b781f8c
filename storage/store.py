from __future__ import annotations

"""Parquet-backed store for the question bank using pandas + pyarrow.

Four collections, one Parquet file each: questions, performance,
quiz_results and settings. A write replaces the collection file in a single
``os.replace`` so readers of that collection never see half of a batch.
Operations touching two collections (``record_attempt``) are two separate
writes and are not atomic together.
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

import pandas as pd
import pyarrow as pa
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from mcqtrainer.errors import StoreError, ValidationError

from .schema import (
    COLLECTIONS,
    DTYPES,
    KEYS,
    PERFORMANCE,
    QUESTIONS,
    QUIZ_RESULTS,
    SETTINGS,
    PerformanceRecord,
    ProgressStats,
    Question,
    QuestionDraft,
    QuestionWithPerformance,
    QuizResult,
    ensure_utc,
    percent,
)

logger = logging.getLogger(__name__)

_STORE_FAILURES = (OSError, ValueError, pa.ArrowException)

M = TypeVar("M", bound=BaseModel)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _empty_df(collection: str) -> pd.DataFrame:
    return _fix_dtypes(pd.DataFrame({k: pd.Series(dtype=object) for k in DTYPES[collection]}), collection)


def _fix_dtypes(df: pd.DataFrame, collection: str) -> pd.DataFrame:
    for col, dt in DTYPES[collection].items():
        if col not in df.columns:
            df[col] = None
        if isinstance(dt, pd.DatetimeTZDtype):
            df[col] = pd.to_datetime(df[col], utc=True)
        else:
            df[col] = df[col].astype(dt)
    return df[list(DTYPES[collection].keys())]


def _to_python(v: Any) -> Any:
    if v is None:
        return None
    if isinstance(v, pd.Timestamp):
        return v.to_pydatetime()
    try:
        if pd.isna(v):
            return None
    except (TypeError, ValueError):
        pass
    if hasattr(v, "item"):
        return v.item()
    return v


def _rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    return [{k: _to_python(v) for k, v in rec.items()} for rec in df.to_dict(orient="records")]


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err.get("loc", ())) or "record"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


def _key_mask(df: pd.DataFrame, collection: str, key: Any) -> pd.Series:
    return (df[KEYS[collection]] == key).fillna(False).astype(bool)


def _load(model: type[M], row: Dict[str, Any], collection: str) -> M:
    """Rebuild a model from a stored row; a row that no longer validates is a storage fault."""
    try:
        return model.model_validate(row)
    except PydanticValidationError as exc:
        logger.error("Corrupt %s row %r: %s", collection, row, _describe(exc))
        raise StoreError(f"Corrupt {collection} row: {_describe(exc)}") from exc


class PersistentStore:
    """Durable keyed storage for questions, performance, quiz results and settings."""

    def __init__(self, data_dir: Path | str, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.data_dir = Path(data_dir)
        self.clock = clock or _utcnow

    # ============= Low-level collection access =============

    def init(self) -> None:
        """Ensure the data directory and empty Parquet files with correct schema exist."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"Cannot create data directory {self.data_dir}: {exc}") from exc
        for collection in COLLECTIONS:
            if not self._path(collection).exists():
                self._write(collection, _empty_df(collection))

    def _path(self, collection: str) -> Path:
        if collection not in DTYPES:
            raise ValueError(f"Unknown collection: {collection}")
        return self.data_dir / f"{collection}.parquet"

    def _read(self, collection: str) -> pd.DataFrame:
        f = self._path(collection)
        if not f.exists():
            return _empty_df(collection)
        try:
            df = pd.read_parquet(f, engine="pyarrow")
        except _STORE_FAILURES as exc:
            logger.error("Error reading %s: %s", f, exc)
            raise StoreError(f"Cannot read {collection}: {exc}") from exc
        return _fix_dtypes(df, collection)

    def _write(self, collection: str, df: pd.DataFrame) -> None:
        f = self._path(collection)
        tmp = f.with_name(f.name + ".tmp")
        try:
            f.parent.mkdir(parents=True, exist_ok=True)
            df = _fix_dtypes(df.reset_index(drop=True), collection)
            df.to_parquet(tmp, engine="pyarrow", compression="zstd", index=False)
            os.replace(tmp, f)
        except _STORE_FAILURES as exc:
            logger.error("Error writing %s: %s", f, exc)
            raise StoreError(f"Cannot write {collection}: {exc}") from exc

    def _upsert_rows(self, collection: str, df: pd.DataFrame, rows: List[Dict[str, Any]]) -> None:
        key = KEYS[collection]
        new = _fix_dtypes(pd.DataFrame(rows), collection)
        keep = df[~df[key].isin(new[key].tolist()).fillna(False).astype(bool)]
        combined = new if keep.empty else pd.concat([keep, new], ignore_index=True)
        self._write(collection, combined.sort_values(key, kind="stable"))

    def get(self, collection: str, key: Any) -> Optional[Dict[str, Any]]:
        df = self._read(collection)
        hit = df[_key_mask(df, collection, key)]
        if hit.empty:
            return None
        return _rows(hit)[0]

    def get_all(self, collection: str) -> List[Dict[str, Any]]:
        return _rows(self._read(collection))

    def put(self, collection: str, row: Dict[str, Any]) -> None:
        """Insert or replace one row keyed by the collection's key column."""
        self._upsert_rows(collection, self._read(collection), [row])

    def count(self, collection: str) -> int:
        return int(len(self._read(collection)))

    # ============= Questions =============

    def add_questions(self, records: Iterable[QuestionDraft | Dict[str, Any]]) -> Dict[str, Any]:
        """Validate and insert candidate questions one record at a time.

        A bad record is counted and reported, never aborting the batch. All
        accepted records become visible together.

        Returns:
            {"added": int, "errors": int, "problems": [str, ...]}
        """
        df = self._read(QUESTIONS)
        next_id = int(df["id"].max()) + 1 if len(df) else 1
        now = ensure_utc(self.clock())
        accepted: List[Dict[str, Any]] = []
        problems: List[str] = []
        for i, rec in enumerate(records):
            try:
                draft = rec if isinstance(rec, QuestionDraft) else QuestionDraft.model_validate(rec)
                q = Question(**draft.model_dump(), id=next_id, created_at=now)
            except PydanticValidationError as exc:
                problems.append(f"record {i}: {_describe(exc)}")
                continue
            accepted.append(q.model_dump())
            next_id += 1
        if accepted:
            self._upsert_rows(QUESTIONS, df, accepted)
        logger.info("Imported questions: added=%d errors=%d", len(accepted), len(problems))
        return {"added": len(accepted), "errors": len(problems), "problems": problems}

    def add_question(self, draft: QuestionDraft | Dict[str, Any]) -> Question:
        """Insert a single question, raising ValidationError when it is malformed."""
        try:
            d = draft if isinstance(draft, QuestionDraft) else QuestionDraft.model_validate(draft)
        except PydanticValidationError as exc:
            raise ValidationError(_describe(exc)) from exc
        df = self._read(QUESTIONS)
        next_id = int(df["id"].max()) + 1 if len(df) else 1
        q = Question(**d.model_dump(), id=next_id, created_at=ensure_utc(self.clock()))
        self._upsert_rows(QUESTIONS, df, [q.model_dump()])
        return q

    def get_question(self, question_id: int) -> Optional[Question]:
        row = self.get(QUESTIONS, question_id)
        return _load(Question, row, QUESTIONS) if row else None

    def get_questions(self) -> List[Question]:
        return [_load(Question, r, QUESTIONS) for r in self.get_all(QUESTIONS)]

    def count_questions(self) -> int:
        return self.count(QUESTIONS)

    def put_question(self, question: Question) -> None:
        self.put(QUESTIONS, question.model_dump())

    def update_explanation(self, question_id: int, explanation: str) -> bool:
        """Attach or replace a question's explanation. False if the question is unknown."""
        q = self.get_question(question_id)
        if q is None:
            return False
        self.put_question(q.model_copy(update={"explanation": explanation.strip() or None}))
        return True

    def mark_asked(self, question_id: int, when: Optional[datetime] = None) -> bool:
        q = self.get_question(question_id)
        if q is None:
            return False
        self.put_question(q.model_copy(update={"last_asked": ensure_utc(when or self.clock())}))
        return True

    # ============= Performance =============

    def get_performance(self, question_id: int) -> Optional[PerformanceRecord]:
        row = self.get(PERFORMANCE, question_id)
        return _load(PerformanceRecord, row, PERFORMANCE) if row else None

    def get_all_performance(self) -> List[PerformanceRecord]:
        return [_load(PerformanceRecord, r, PERFORMANCE) for r in self.get_all(PERFORMANCE)]

    def put_performance(self, record: PerformanceRecord) -> None:
        self.put(PERFORMANCE, record.model_dump())

    def increment_performance(self, question_id: int, correct: bool, when: Optional[datetime] = None) -> PerformanceRecord:
        """Count one attempt for a question, creating its record on first ask."""
        df = self._read(PERFORMANCE)
        hit = df[_key_mask(df, PERFORMANCE, question_id)]
        if hit.empty:
            rec = PerformanceRecord(question_id=question_id)
        else:
            rec = _load(PerformanceRecord, _rows(hit)[0], PERFORMANCE)
        rec = PerformanceRecord(
            question_id=question_id,
            times_asked=rec.times_asked + 1,
            times_correct=rec.times_correct + (1 if correct else 0),
            last_attempt=ensure_utc(when or self.clock()),
        )
        self._upsert_rows(PERFORMANCE, df, [rec.model_dump()])
        return rec

    def record_attempt(self, question_id: int, correct: bool, when: Optional[datetime] = None) -> PerformanceRecord:
        """Increment performance, then stamp the question's last_asked.

        Two collections, two writes: a failure between them leaves the
        performance record updated and last_asked stale.
        """
        when = ensure_utc(when or self.clock())
        rec = self.increment_performance(question_id, correct, when)
        self.mark_asked(question_id, when)
        return rec

    def questions_with_performance(self) -> List[QuestionWithPerformance]:
        """Every question with its performance record, or a zero record if never asked."""
        perf = {p.question_id: p for p in self.get_all_performance()}
        return [
            QuestionWithPerformance(question=q, performance=perf.get(q.id) or PerformanceRecord(question_id=q.id))
            for q in self.get_questions()
        ]

    # ============= Quiz results =============

    def save_quiz_result(self, result: QuizResult) -> QuizResult:
        """Append one immutable quiz result and return it with its assigned id."""
        df = self._read(QUIZ_RESULTS)
        next_id = int(df["id"].max()) + 1 if len(df) else 1
        stored = QuizResult.model_validate({**result.model_dump(), "id": next_id})
        self._upsert_rows(QUIZ_RESULTS, df, [stored.model_dump()])
        return stored

    def get_quiz_results(self, limit: Optional[int] = 20) -> List[QuizResult]:
        """Quiz results newest first."""
        df = self._read(QUIZ_RESULTS)
        df = df.sort_values(["completed_at", "id"], ascending=False, kind="stable")
        if limit:
            df = df.head(limit)
        return [_load(QuizResult, r, QUIZ_RESULTS) for r in _rows(df)]

    def count_quiz_results(self) -> int:
        return self.count(QUIZ_RESULTS)

    # ============= Settings =============

    def get_setting(self, key: str, default: Optional[str] = None) -> Optional[str]:
        row = self.get(SETTINGS, key)
        if row is None or row.get("value") is None:
            return default
        return str(row["value"])

    def put_setting(self, key: str, value: str) -> None:
        self.put(SETTINGS, {"key": key, "value": str(value)})

    def get_settings(self) -> Dict[str, str]:
        return {r["key"]: r["value"] for r in self.get_all(SETTINGS)}

    # ============= Analytics =============

    def get_progress_stats(self, history_limit: int = 20) -> ProgressStats:
        """Aggregate coverage/accuracy over the bank plus recent quiz history.

        Coverage counts attempts, not distinct questions, so it is clamped to 100.
        """
        total_questions = self.count_questions()
        perf = self._read(PERFORMANCE)
        total_asked = int(perf["times_asked"].sum()) if len(perf) else 0
        total_correct = int(perf["times_correct"].sum()) if len(perf) else 0
        seen = int((perf["times_asked"] > 0).sum()) if len(perf) else 0
        return ProgressStats(
            total_questions=total_questions,
            total_asked=total_asked,
            total_correct=total_correct,
            questions_seen=seen,
            coverage=min(100, percent(total_asked, total_questions)),
            accuracy=percent(total_correct, total_asked),
            quizzes_taken=self.count_quiz_results(),
            quiz_history=self.get_quiz_results(history_limit),
        )

    # ============= Maintenance =============

    def clear(self) -> None:
        """Delete every collection file. The directory itself is kept."""
        for collection in COLLECTIONS:
            f = self._path(collection)
            try:
                f.unlink(missing_ok=True)
            except OSError as exc:
                raise StoreError(f"Cannot remove {f}: {exc}") from exc
        logger.info("Cleared store at %s", self.data_dir)

    def export_ndjson(self, collection: str, out_path: Path | str) -> int:
        """Export a collection to line-delimited JSON (NDJSON); returns the row count."""
        df = self._read(collection)
        Path(out_path).parent.mkdir(parents=True, exist_ok=True)
        df.to_json(out_path, orient="records", lines=True, date_format="iso")
        return int(len(df))
