import unittest

from storage.schema import PerformanceRecord

from mcqtrainer.policy.priority import PriorityScorer, ScoringConfig


def perf(asked: int, correct: int) -> PerformanceRecord:
    return PerformanceRecord(question_id=1, times_asked=asked, times_correct=correct)


class PriorityScorerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.scorer = PriorityScorer()

    def test_never_asked_is_highest(self) -> None:
        self.assertEqual(self.scorer.score(perf(0, 0)), 100)
        self.assertGreater(self.scorer.score(perf(0, 0)), self.scorer.score(perf(1, 0)))

    def test_asked_once_wrong(self) -> None:
        self.assertEqual(self.scorer.score(perf(1, 0)), 90)

    def test_asked_once_right_hits_floor(self) -> None:
        # (1 - 1) * 60 - 2 -> clamped to 10
        self.assertEqual(self.scorer.score(perf(1, 1)), 10)

    def test_accuracy_and_frequency(self) -> None:
        # accuracy 0.5 -> 30, minus min(20, 4*2)=8 -> 22
        self.assertAlmostEqual(self.scorer.score(perf(4, 2)), 22.0)
        # frequency penalty capped at 20: accuracy 0.5 over 20 asks -> 30 - 20
        self.assertAlmostEqual(self.scorer.score(perf(20, 10)), 10.0)

    def test_always_wrong_gets_boost_after_floor(self) -> None:
        # 60 - min(20, 6) = 54, +20 boost
        self.assertAlmostEqual(self.scorer.score(perf(3, 0)), 74.0)
        # 60 - 20 = 40, +20
        self.assertAlmostEqual(self.scorer.score(perf(15, 0)), 60.0)

    def test_lower_accuracy_never_scores_lower(self) -> None:
        for asked in range(2, 30):
            scores = [self.scorer.score(perf(asked, c)) for c in range(asked + 1)]
            for worse, better in zip(scores, scores[1:]):
                self.assertGreaterEqual(worse, better)
            self.assertLess(scores[-1], scores[0])

    def test_constants_are_overridable(self) -> None:
        scorer = PriorityScorer(ScoringConfig(never_asked=500, min_score=1, never_correct_boost=0))
        self.assertEqual(scorer.score(perf(0, 0)), 500)
        self.assertEqual(scorer.score(perf(1, 1)), 1)
        self.assertAlmostEqual(scorer.score(perf(3, 0)), 54.0)

    def test_from_config_section(self) -> None:
        scorer = PriorityScorer.from_config({"scoring": {"never_correct": 42}})
        self.assertEqual(scorer(perf(1, 0)), 42)
        self.assertEqual(scorer(perf(0, 0)), 100)


if __name__ == "__main__":
    unittest.main()
