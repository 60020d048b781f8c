from __future__ import annotations

"""Exception taxonomy for the practice engine.

Every error is scoped to the operation that raised it; none is fatal to the
application as a whole.
"""

from datetime import timedelta
from typing import Optional, Sequence


class QuizError(Exception):
    """Base class for practice engine errors."""


class ValidationError(QuizError):
    """A malformed input record (e.g. a question missing required fields)."""


class StoreError(QuizError):
    """An underlying storage operation failed. Never retried automatically."""


class EmptyBankError(QuizError):
    """A quiz was requested but the question bank is empty."""


class NotReadyError(QuizError):
    """A session start was attempted during the cooldown."""

    def __init__(self, remaining: timedelta) -> None:
        self.remaining = remaining
        total = max(0, int(remaining.total_seconds()))
        hours, rest = divmod(total, 3600)
        minutes = rest // 60
        super().__init__(f"Please wait {hours}h {minutes}m before taking another quiz.")


class PartialUpdateError(QuizError):
    """A submit sequence failed partway; earlier writes are kept, nothing is rolled back."""

    def __init__(
        self,
        *,
        updated: Sequence[int],
        failed: Optional[int],
        skipped: Sequence[int],
        result_saved: bool,
        schedule_saved: bool,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.updated = list(updated)
        self.failed = failed
        self.skipped = list(skipped)
        self.result_saved = result_saved
        self.schedule_saved = schedule_saved
        self.cause = cause
        if failed is not None:
            step = f"performance update for question {failed}"
        elif not result_saved:
            step = "quiz result write"
        else:
            step = "schedule update"
        super().__init__(
            f"Submit failed at {step}: {len(self.updated)} performance records updated, "
            f"{len(self.skipped)} skipped, result_saved={result_saved}, schedule_saved={schedule_saved}"
        )
