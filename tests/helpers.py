"""Shared fixtures for the unittest suites: a controllable clock and temp stores."""

import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from storage.store import PersistentStore

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def draft(i: int, correct: str = "A", category: Optional[str] = None) -> dict:
    return {
        "text": f"Question {i}?",
        "option_a": f"a{i}",
        "option_b": f"b{i}",
        "option_c": f"c{i}",
        "option_d": f"d{i}",
        "correct": correct,
        "explanation": f"Because {i}.",
        "category": category,
    }


def temp_store(case: unittest.TestCase, clock: Optional[FakeClock] = None, cls=PersistentStore) -> PersistentStore:
    tmp = tempfile.TemporaryDirectory()
    case.addCleanup(tmp.cleanup)
    store = cls(Path(tmp.name) / "data", clock=clock or FakeClock())
    store.init()
    return store


def seeded_store(case: unittest.TestCase, n: int, clock: Optional[FakeClock] = None, cls=PersistentStore) -> PersistentStore:
    store = temp_store(case, clock, cls)
    store.add_questions([draft(i, correct="ABCD"[i % 4]) for i in range(1, n + 1)])
    return store
