from __future__ import annotations

"""Question sampler: picks a quiz's question set biased toward weak spots.

Selection is weighted sampling without replacement on priority scores,
followed by an independent shuffle so presentation order says nothing about
priority.
"""

import math
import random
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from storage.schema import PerformanceRecord, Question, QuestionWithPerformance

from ..policy.priority import PriorityScorer

ScoreFn = Callable[[PerformanceRecord], float]


@dataclass
class SamplerConfig:
    # Upper bound on weighted draws per selection; None = 10 * count + bank size
    max_draws: Optional[int] = None
    rng_seed: Optional[int] = None


def _weight(score: float) -> float:
    if not math.isfinite(score) or score <= 0:
        return 0.0
    return float(score)


class QuestionSampler:
    def __init__(
        self,
        scorer: Optional[PriorityScorer | ScoreFn] = None,
        config: Optional[SamplerConfig] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.scorer: ScoreFn = scorer or PriorityScorer()
        self.cfg = config or SamplerConfig()
        self.rng = rng or random.Random(self.cfg.rng_seed)

    def ranked(self, items: Sequence[QuestionWithPerformance]) -> List[Tuple[QuestionWithPerformance, float]]:
        """Items with their scores, highest first; ties broken by question id."""
        scored = [(it, float(self.scorer(it.performance))) for it in items]
        scored.sort(key=lambda p: (-p[1] if math.isfinite(p[1]) else math.inf, p[0].id))
        return scored

    def select(self, items: Sequence[QuestionWithPerformance], count: int) -> List[Question]:
        """Pick min(count, len(items)) distinct questions in random order."""
        if count <= 0 or not items:
            return []
        if len(items) <= count:
            out = [it.question for it in items]
            self.rng.shuffle(out)
            return out

        ranked = self.ranked(items)
        pool = [(it, _weight(s)) for it, s in ranked]
        selected: List[QuestionWithPerformance] = []
        limit = self.cfg.max_draws if self.cfg.max_draws is not None else 10 * count + len(items)
        draws = 0
        while len(selected) < count and pool and draws < limit:
            total = sum(w for _, w in pool)
            if not math.isfinite(total) or total <= 0:
                break
            draws += 1
            r = self.rng.random() * total
            acc = 0.0
            for idx, (_, w) in enumerate(pool):
                acc += w
                if r < acc:
                    selected.append(pool.pop(idx)[0])
                    break

        if len(selected) < count:
            # Stalled draw: top up with the highest-scoring remaining questions
            # (pool keeps ranked order).
            selected.extend(it for it, _ in pool[: count - len(selected)])

        out = [it.question for it in selected]
        self.rng.shuffle(out)
        return out
