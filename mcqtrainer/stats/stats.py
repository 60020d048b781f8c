from __future__ import annotations

"""Formatting of quiz results and progress for text front ends."""

from datetime import timedelta
from typing import List

from storage.schema import ProgressStats, QuizResult

from ..results.schema import SubmissionReport


def format_duration(seconds: float | timedelta) -> str:
    """Render a duration as "Xm Ys"."""
    if isinstance(seconds, timedelta):
        seconds = seconds.total_seconds()
    total = max(0, int(seconds))
    return f"{total // 60}m {total % 60}s"


def format_clock(seconds: float | timedelta) -> str:
    """Countdown style "MM:SS"."""
    if isinstance(seconds, timedelta):
        seconds = seconds.total_seconds()
    total = max(0, int(seconds))
    return f"{total // 60:02d}:{total % 60:02d}"


def result_message(percentage: int) -> str:
    if percentage >= 90:
        return "Outstanding! You are exam-ready!"
    if percentage >= 75:
        return "Great job! Keep it up!"
    if percentage >= 60:
        return "Good effort! Practice more."
    if percentage >= 40:
        return "Needs improvement. Review explanations."
    return "Needs more practice. Focus on understanding."


def format_summary(report: SubmissionReport) -> str:
    """Return a human-readable summary of a submitted quiz."""
    r = report.result
    lines = [
        f"Score: {r.score}/{r.total} ({r.percentage}%) in {format_duration(r.duration_s)}",
        result_message(r.percentage),
        f"Correct: {report.correct}  Incorrect: {report.incorrect}  Unanswered: {report.unanswered}",
    ]
    if report.timed_out:
        lines.append("Time ran out; unanswered questions were counted as incorrect.")
    for i, o in enumerate(report.outcomes, start=1):
        mark = "OK " if o.is_correct else "XX "
        line = f"{mark}Q{i}: your answer {o.chosen or 'Not answered'}"
        if not o.is_correct:
            line += f", correct {o.correct_option}"
        lines.append(line)
        if o.explanation:
            lines.append(f"     {o.explanation}")
    return "\n".join(lines)


def format_history(results: List[QuizResult]) -> str:
    if not results:
        return "No quizzes taken yet"
    return "\n".join(
        f"{r.completed_at:%Y-%m-%d %H:%M}  {r.score}/{r.total} ({r.percentage}%)  {format_duration(r.duration_s)}"
        for r in results
    )


def format_progress(stats: ProgressStats) -> str:
    lines = [
        f"Questions in bank: {stats.total_questions}",
        f"Coverage: {stats.coverage}%",
        f"Accuracy: {stats.accuracy}%",
        f"Readiness: {stats.readiness}%",
        f"Attempted: {stats.total_asked}  Correct: {stats.total_correct}",
        f"Quizzes taken: {stats.quizzes_taken}",
    ]
    return "\n".join(lines)
