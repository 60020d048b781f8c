from __future__ import annotations

"""Session Manager: orchestrates sampling, the active quiz, and persistence.

Owns at most one active QuizSession. Only ``submit`` writes anything; an
abandoned session leaves the store untouched. The submit sequence is:
per-question performance updates (in presentation order), one quiz result,
then the scheduler's ``record_quiz_taken``. A failure stops the sequence and
raises PartialUpdateError describing what was written; nothing is rolled back
or retried.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from storage.schema import QuizResult, ensure_utc
from storage.store import PersistentStore

from ..errors import EmptyBankError, NotReadyError, PartialUpdateError, QuizError, StoreError
from ..policy.priority import PriorityScorer
from ..results.schema import SubmissionReport
from ..samplers.question_sampler import QuestionSampler
from ..util.randomness import make_rng
from .events import QUIZ_SUBMITTED, EventBus
from .explain import trace as xtrace
from .quiz_session import QuizSession
from .scheduler import CooldownScheduler

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    def __init__(
        self,
        cfg: Dict[str, Any],
        store: PersistentStore,
        scheduler: CooldownScheduler,
        *,
        sampler: Optional[QuestionSampler] = None,
        clock: Optional[Callable[[], datetime]] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.cfg = cfg
        self.store = store
        self.scheduler = scheduler
        self.sampler = sampler or QuestionSampler(PriorityScorer.from_config(cfg), rng=make_rng())
        self.clock = clock or scheduler.clock or _utcnow
        self.bus = bus or scheduler.bus
        quiz = cfg.get("quiz", {})
        self.questions_per_quiz = int(quiz.get("questions_per_quiz", 25))
        self.time_limit = timedelta(seconds=float(quiz.get("time_limit_s", 600)))
        self.auto_submit = bool(quiz.get("auto_submit", False))
        self.last_report: Optional[SubmissionReport] = None
        self.last_error: Optional[Exception] = None
        self._session: Optional[QuizSession] = None
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.RLock()

    def _now(self, now: Optional[datetime] = None) -> datetime:
        return ensure_utc(now if now is not None else self.clock())

    @property
    def active(self) -> Optional[QuizSession]:
        return self._session

    # ---- lifecycle ----

    def start_session(self, now: Optional[datetime] = None, *, category: Optional[str] = None) -> QuizSession:
        """Sample a new quiz. Refused during the cooldown or while another session is active."""
        now = self._now(now)
        with self._lock:
            if self._session is not None:
                raise QuizError("A quiz is already in progress")
            if not self.scheduler.is_ready(now):
                raise NotReadyError(self.scheduler.time_remaining(now))
            items = self.store.questions_with_performance()
            if category:
                items = [it for it in items if it.question.category == category]
            if not items:
                raise EmptyBankError("No questions found. Please import questions first.")
            questions = self.sampler.select(items, self.questions_per_quiz)
            self._session = QuizSession(
                questions=questions,
                started_at=now,
                time_limit=self.time_limit,
                category=category,
            )
            if self.auto_submit:
                self._arm_timer()
        logger.info("Session %s started with %d questions", self._session.session_id, len(questions))
        xtrace("session_started", {"session": self._session.session_id, "questions": len(questions)})
        return self._session

    def record_answer(self, question_id: int, option: str, now: Optional[datetime] = None) -> None:
        """Record an answer; past the deadline the quiz is submitted as it stood and QuizError is raised."""
        now = self._now(now)
        with self._lock:
            if self._session is None:
                raise QuizError("No quiz in progress")
            if self._session.is_expired(now):
                self.submit(now, timed_out=True)
                raise QuizError("Time is up; the quiz was submitted with the answers given in time")
            self._session.record_answer(question_id, option, now)
        xtrace("answer_recorded", {"question": question_id, "option": option})

    def abandon(self) -> None:
        """Discard the active session without writing anything."""
        with self._lock:
            self._cancel_timer()
            if self._session is not None:
                logger.info("Session %s abandoned", self._session.session_id)
            self._session = None

    def submit(self, now: Optional[datetime] = None, *, timed_out: bool = False) -> SubmissionReport:
        """Grade the active session and write its outcome; the session is discarded either way."""
        now = self._now(now)
        with self._lock:
            session = self._session
            if session is None:
                raise QuizError("No quiz in progress")
            self._cancel_timer()
            timed_out = timed_out or session.is_expired(now)
            session.mark_submitted()
            self._session = None
            try:
                report = self._persist(session, now, timed_out)
            except PartialUpdateError as exc:
                self.last_error = exc
                raise
            self.last_report = report
            self.last_error = None
        self.bus.emit(QUIZ_SUBMITTED, report)
        return report

    def check_timeout(self, now: Optional[datetime] = None) -> Optional[SubmissionReport]:
        """Force submit when the countdown has run out; None if nothing expired."""
        now = self._now(now)
        with self._lock:
            if self._session is None or not self._session.is_expired(now):
                return None
            return self.submit(now, timed_out=True)

    # ---- persistence ----

    def _persist(self, session: QuizSession, now: datetime, timed_out: bool) -> SubmissionReport:
        outcomes = session.grade()
        ids = [o.question_id for o in outcomes]
        updated: list[int] = []
        for i, o in enumerate(outcomes):
            try:
                self.store.record_attempt(o.question_id, o.is_correct, now)
            except StoreError as exc:
                logger.error("Performance update failed for question %s: %s", o.question_id, exc)
                raise PartialUpdateError(
                    updated=updated,
                    failed=o.question_id,
                    skipped=ids[i + 1:],
                    result_saved=False,
                    schedule_saved=False,
                    cause=exc,
                ) from exc
            updated.append(o.question_id)

        score = sum(1 for o in outcomes if o.is_correct)
        try:
            result = self.store.save_quiz_result(
                QuizResult(
                    completed_at=now,
                    score=score,
                    total=len(outcomes),
                    duration_s=max(0.0, (min(now, session.deadline) - session.started_at).total_seconds()),
                    category=session.category,
                )
            )
        except StoreError as exc:
            logger.error("Quiz result write failed: %s", exc)
            raise PartialUpdateError(
                updated=updated, failed=None, skipped=[], result_saved=False, schedule_saved=False, cause=exc
            ) from exc

        try:
            self.scheduler.record_quiz_taken(now)
        except StoreError as exc:
            logger.error("Schedule update failed: %s", exc)
            raise PartialUpdateError(
                updated=updated, failed=None, skipped=[], result_saved=True, schedule_saved=False, cause=exc
            ) from exc

        logger.info(
            "Session %s submitted: %d/%d (%d%%)%s",
            session.session_id,
            result.score,
            result.total,
            result.percentage,
            " [timed out]" if timed_out else "",
        )
        xtrace("session_submitted", {"score": result.score, "total": result.total, "timed_out": timed_out})
        return SubmissionReport(result=result, outcomes=outcomes, timed_out=timed_out)

    # ---- countdown ----

    def _arm_timer(self) -> None:
        self._cancel_timer()
        self._timer = threading.Timer(self.time_limit.total_seconds(), self._on_expired)
        self._timer.daemon = True
        self._timer.start()

    def _cancel_timer(self) -> None:
        if self._timer:
            self._timer.cancel()
            self._timer = None

    def _on_expired(self) -> None:
        try:
            with self._lock:
                if self._session is None:
                    return
                self._timer = None
                self.submit(timed_out=True)
        except PartialUpdateError:
            logger.exception("Auto-submit after countdown expiry was incomplete")
