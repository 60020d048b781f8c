import random
import threading
import unittest
from datetime import timedelta

from storage.schema import PERFORMANCE
from storage.store import PersistentStore

from mcqtrainer.app.events import QUIZ_SUBMITTED, EventBus
from mcqtrainer.app.scheduler import CooldownScheduler
from mcqtrainer.app.session_manager import SessionManager
from mcqtrainer.config.config import validate_config
from mcqtrainer.errors import (
    EmptyBankError,
    NotReadyError,
    PartialUpdateError,
    QuizError,
    StoreError,
    ValidationError,
)
from mcqtrainer.samplers.question_sampler import QuestionSampler

from helpers import T0, FakeClock, draft, seeded_store, temp_store


class FlakyStore(PersistentStore):
    """Fails the n-th performance update or the quiz result write."""

    fail_attempt_at = None
    fail_result = False

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.attempts = 0

    def record_attempt(self, question_id, correct, when=None):
        self.attempts += 1
        if self.attempts == self.fail_attempt_at:
            raise StoreError("disk full")
        return super().record_attempt(question_id, correct, when)

    def save_quiz_result(self, result):
        if self.fail_result:
            raise StoreError("disk full")
        return super().save_quiz_result(result)


def wrong(letter: str) -> str:
    return "B" if letter == "A" else "A"


class SessionManagerTestCase(unittest.TestCase):
    bank_size = 40
    per_quiz = 25
    store_cls = PersistentStore

    def setUp(self) -> None:
        self.clock = FakeClock()
        self.store = seeded_store(self, self.bank_size, self.clock, self.store_cls)
        self.bus = EventBus()
        self.submitted = []
        self.bus.subscribe(QUIZ_SUBMITTED, self.submitted.append)
        self.cfg = validate_config({"quiz": {"questions_per_quiz": self.per_quiz, "auto_submit": False}})
        self.scheduler = CooldownScheduler.from_config(self.cfg, self.store, clock=self.clock, bus=self.bus)
        self.mgr = SessionManager(
            self.cfg,
            self.store,
            self.scheduler,
            sampler=QuestionSampler(rng=random.Random(11)),
            clock=self.clock,
            bus=self.bus,
        )
        self.addCleanup(self.mgr.abandon)


class FullQuizTests(SessionManagerTestCase):
    def test_all_correct_quiz(self) -> None:
        session = self.mgr.start_session()
        self.assertEqual(len(session.questions), 25)
        self.assertEqual(len(set(session.question_ids)), 25)
        for q in session.questions:
            self.mgr.record_answer(q.id, q.correct)
        report = self.mgr.submit(self.clock.advance(minutes=5))

        self.assertEqual(report.result.score, 25)
        self.assertEqual(report.result.total, 25)
        self.assertEqual(report.result.percentage, 100)
        self.assertEqual(report.result.duration_s, 300.0)
        self.assertFalse(report.timed_out)
        for qid in session.question_ids:
            perf = self.store.get_performance(qid)
            self.assertEqual((perf.times_asked, perf.times_correct), (1, 1))
        self.assertEqual(len(self.store.get_all_performance()), 25)
        self.assertEqual(self.store.count_quiz_results(), 1)
        self.assertEqual(self.scheduler.last_quiz_time, self.clock.now)
        self.assertFalse(self.scheduler.is_ready())
        self.assertEqual(self.submitted, [report])
        self.assertIsNone(self.mgr.active)
        self.assertFalse(session.is_active)

    def test_overwritten_answer_counts_last_choice(self) -> None:
        session = self.mgr.start_session()
        q = session.questions[0]
        self.mgr.record_answer(q.id, wrong(q.correct))
        self.mgr.record_answer(q.id, q.correct.lower())
        report = self.mgr.submit()
        self.assertEqual(report.result.score, 1)
        self.assertEqual(report.unanswered, 24)

    def test_cooldown_blocks_next_session(self) -> None:
        self.mgr.start_session()
        self.mgr.submit()
        self.clock.advance(minutes=30)
        with self.assertRaises(NotReadyError) as ctx:
            self.mgr.start_session()
        self.assertEqual(ctx.exception.remaining, timedelta(minutes=90))
        self.assertIn("1h 30m", str(ctx.exception))
        self.clock.advance(minutes=90)
        self.assertEqual(len(self.mgr.start_session().questions), 25)

    def test_second_quiz_prefers_unseen_questions(self) -> None:
        session = self.mgr.start_session()
        for q in session.questions:
            self.mgr.record_answer(q.id, q.correct)
        self.mgr.submit()
        self.clock.advance(hours=2)
        first = set(session.question_ids)
        second = set(self.mgr.start_session().question_ids)
        # 15 unseen questions score 100 against 10 for the answered ones.
        self.assertGreaterEqual(len(second - first), 12)

    def test_only_one_active_session(self) -> None:
        self.mgr.start_session()
        with self.assertRaises(QuizError):
            self.mgr.start_session()

    def test_answer_validation(self) -> None:
        session = self.mgr.start_session()
        outsider = next(i for i in range(1, self.bank_size + 1) if i not in session.question_ids)
        with self.assertRaises(QuizError):
            self.mgr.record_answer(outsider, "A")
        with self.assertRaises(ValidationError):
            self.mgr.record_answer(session.questions[0].id, "E")

    def test_submit_without_session(self) -> None:
        with self.assertRaises(QuizError):
            self.mgr.submit()
        with self.assertRaises(QuizError):
            self.mgr.record_answer(1, "A")

    def test_abandon_writes_nothing(self) -> None:
        session = self.mgr.start_session()
        self.mgr.record_answer(session.questions[0].id, "A")
        self.mgr.abandon()
        self.assertIsNone(self.mgr.active)
        self.assertEqual(self.store.get_all_performance(), [])
        self.assertEqual(self.store.count_quiz_results(), 0)
        self.assertIsNone(self.scheduler.last_quiz_time)
        self.assertTrue(self.scheduler.is_ready())
        self.assertEqual(self.submitted, [])
        self.mgr.start_session()


class ShortQuizTests(SessionManagerTestCase):
    per_quiz = 10

    def test_unanswered_count_as_incorrect(self) -> None:
        session = self.mgr.start_session()
        answered = session.questions[:6]
        for q in answered[:5]:
            self.mgr.record_answer(q.id, q.correct)
        self.mgr.record_answer(answered[5].id, wrong(answered[5].correct))
        report = self.mgr.submit()

        self.assertEqual(report.result.score, 5)
        self.assertEqual(report.result.total, 10)
        self.assertEqual(report.result.percentage, 50)
        self.assertEqual((report.correct, report.incorrect, report.unanswered), (5, 5, 4))
        for q in session.questions[6:]:
            perf = self.store.get_performance(q.id)
            self.assertEqual((perf.times_asked, perf.times_correct), (1, 0))
        self.assertEqual(self.store.get_performance(answered[5].id).times_correct, 0)

    def test_timeout_forces_submit(self) -> None:
        session = self.mgr.start_session()
        self.mgr.record_answer(session.questions[0].id, session.questions[0].correct)
        self.assertIsNone(self.mgr.check_timeout(self.clock.advance(minutes=9)))
        self.assertIsNotNone(self.mgr.active)
        report = self.mgr.check_timeout(self.clock.advance(minutes=1))
        self.assertTrue(report.timed_out)
        self.assertEqual(report.result.score, 1)
        self.assertEqual(report.unanswered, 9)
        self.assertIsNone(self.mgr.active)
        self.assertEqual(self.store.count_quiz_results(), 1)

    def test_late_answers_are_refused(self) -> None:
        session = self.mgr.start_session()
        first, second = session.questions[0], session.questions[1]
        self.mgr.record_answer(first.id, first.correct)
        self.clock.advance(minutes=20)
        with self.assertRaises(QuizError):
            self.mgr.record_answer(second.id, second.correct)
        self.assertIsNone(self.mgr.active)
        report = self.mgr.last_report
        self.assertTrue(report.timed_out)
        self.assertEqual(report.result.score, 1)
        self.assertEqual(report.result.duration_s, 600.0)
        self.assertEqual(self.store.get_performance(second.id).times_correct, 0)
        self.assertEqual(self.store.count_quiz_results(), 1)
        with self.assertRaises(QuizError):
            self.mgr.record_answer(second.id, second.correct)

    def test_submit_after_deadline_counts_as_timeout(self) -> None:
        session = self.mgr.start_session()
        self.mgr.record_answer(session.questions[0].id, session.questions[0].correct)
        report = self.mgr.submit(self.clock.advance(minutes=15))
        self.assertTrue(report.timed_out)
        self.assertEqual(report.result.score, 1)
        self.assertEqual(report.result.duration_s, 600.0)

    def test_category_filter(self) -> None:
        self.store.add_questions([draft(100 + i, category="geo") for i in range(3)])
        session = self.mgr.start_session(category="geo")
        self.assertEqual(len(session.questions), 3)
        self.assertTrue(all(q.category == "geo" for q in session.questions))
        report = self.mgr.submit()
        self.assertEqual(report.result.category, "geo")

    def test_auto_submit_timer(self) -> None:
        done = threading.Event()
        self.bus.subscribe(QUIZ_SUBMITTED, lambda report: done.set())
        self.mgr.auto_submit = True
        self.mgr.time_limit = timedelta(milliseconds=50)
        self.mgr.start_session()
        self.assertTrue(done.wait(5))
        self.assertTrue(self.submitted[0].timed_out)
        self.assertIsNone(self.mgr.active)


class EmptyBankTests(unittest.TestCase):
    def test_empty_bank(self) -> None:
        clock = FakeClock()
        store = temp_store(self, clock)
        cfg = validate_config({"quiz": {"auto_submit": False}})
        mgr = SessionManager(cfg, store, CooldownScheduler(store, clock=clock), clock=clock)
        with self.assertRaises(EmptyBankError):
            mgr.start_session()
        self.assertIsNone(mgr.active)


class PartialSubmitTests(SessionManagerTestCase):
    per_quiz = 10
    store_cls = FlakyStore

    def test_failed_performance_update(self) -> None:
        self.store.fail_attempt_at = 3
        session = self.mgr.start_session()
        with self.assertRaises(PartialUpdateError) as ctx:
            self.mgr.submit()
        exc = ctx.exception
        ids = session.question_ids
        self.assertEqual(exc.updated, ids[:2])
        self.assertEqual(exc.failed, ids[2])
        self.assertEqual(exc.skipped, ids[3:])
        self.assertFalse(exc.result_saved)
        self.assertFalse(exc.schedule_saved)
        self.assertIsInstance(exc.cause, StoreError)
        self.assertIs(self.mgr.last_error, exc)

        self.assertEqual(len(self.store.get_all_performance()), 2)
        self.assertEqual(self.store.count_quiz_results(), 0)
        self.assertIsNone(self.scheduler.last_quiz_time)
        self.assertIsNone(self.mgr.active)
        self.assertEqual(self.submitted, [])

    def test_failed_result_write(self) -> None:
        self.store.fail_result = True
        session = self.mgr.start_session()
        with self.assertRaises(PartialUpdateError) as ctx:
            self.mgr.submit()
        exc = ctx.exception
        self.assertEqual(exc.updated, session.question_ids)
        self.assertIsNone(exc.failed)
        self.assertFalse(exc.result_saved)
        self.assertIn("quiz result write", str(exc))
        self.assertEqual(len(self.store.get_all_performance()), 10)
        self.assertTrue(self.scheduler.is_ready())

    def test_corrupt_performance_row(self) -> None:
        session = self.mgr.start_session()
        ids = session.question_ids
        self.store.put(PERFORMANCE, {"question_id": ids[1], "times_asked": 1, "times_correct": 3})
        with self.assertRaises(PartialUpdateError) as ctx:
            self.mgr.submit()
        exc = ctx.exception
        self.assertEqual(exc.updated, ids[:1])
        self.assertEqual(exc.failed, ids[1])
        self.assertEqual(exc.skipped, ids[2:])
        self.assertIsInstance(exc.cause, StoreError)
        self.assertEqual(self.store.count_quiz_results(), 0)


if __name__ == "__main__":
    unittest.main()
