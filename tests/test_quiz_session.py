import unittest
from datetime import timedelta

from storage.schema import Question

from mcqtrainer.app.quiz_session import QuizSession
from mcqtrainer.errors import QuizError, ValidationError

from helpers import T0, draft


def questions(n: int) -> list[Question]:
    return [Question(**draft(i, correct="ABCD"[i % 4]), id=i, created_at=T0) for i in range(1, n + 1)]


class QuizSessionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = QuizSession(questions=questions(4), started_at=T0)

    def test_navigation_stays_in_bounds(self) -> None:
        s = self.session
        self.assertEqual(s.current.id, 1)
        self.assertEqual(s.previous().id, 1)
        s.next()
        s.next()
        s.next()
        self.assertEqual(s.next().id, 4)
        self.assertEqual(s.go_to(1).id, 2)
        self.assertEqual(s.go_to(10).id, 2)

    def test_answers_are_normalised_and_overwritable(self) -> None:
        s = self.session
        s.record_answer(2, " c ")
        self.assertEqual(s.answer_for(2), "C")
        s.record_answer(2, "D")
        self.assertEqual(s.answer_for(2), "D")
        s.clear_answer(2)
        self.assertIsNone(s.answer_for(2))
        self.assertEqual(s.progress(), {"index": 0, "answered": 0, "total": 4})

    def test_rejects_bad_answers(self) -> None:
        with self.assertRaises(ValidationError):
            self.session.record_answer(1, "Z")
        with self.assertRaises(QuizError):
            self.session.record_answer(99, "A")

    def test_grade(self) -> None:
        s = self.session
        s.record_answer(1, "B")  # correct for id 1
        s.record_answer(2, "A")  # wrong, correct is C
        outcomes = s.grade()
        self.assertEqual([o.is_correct for o in outcomes], [True, False, False, False])
        self.assertEqual([o.answered for o in outcomes], [True, True, False, False])
        self.assertEqual(outcomes[1].correct_option, "C")
        self.assertEqual(outcomes[0].explanation, "Because 1.")

    def test_countdown(self) -> None:
        s = self.session
        self.assertEqual(s.deadline, T0 + timedelta(minutes=10))
        self.assertEqual(s.time_left(T0 + timedelta(minutes=4)), timedelta(minutes=6))
        self.assertFalse(s.is_expired(T0 + timedelta(seconds=599)))
        self.assertTrue(s.is_expired(T0 + timedelta(seconds=600)))
        self.assertEqual(s.time_left(T0 + timedelta(hours=1)), timedelta(0))

    def test_answers_refused_after_deadline(self) -> None:
        s = self.session
        s.record_answer(1, "B", T0 + timedelta(seconds=599))
        with self.assertRaises(QuizError):
            s.record_answer(2, "C", T0 + timedelta(minutes=20))
        self.assertIsNone(s.answer_for(2))
        self.assertEqual(s.answer_for(1), "B")

    def test_submitted_session_is_frozen(self) -> None:
        s = self.session
        s.record_answer(1, "B")
        s.mark_submitted()
        self.assertFalse(s.is_active)
        with self.assertRaises(QuizError):
            s.record_answer(1, "A")
        s.clear_answer(1)
        self.assertEqual(s.answer_for(1), "B")


if __name__ == "__main__":
    unittest.main()
