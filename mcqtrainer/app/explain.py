from __future__ import annotations

"""Explain Mode: one-line traces of engine milestones.

Turned on by ``mcqtrainer --explain`` or the MCQ_EXPLAIN env var. Each line
looks like ``[EXPLAIN] session_started :: {"questions":25}`` and goes to
stderr so it never mixes with quiz prompts.
"""

import json
import os
import sys
from typing import Any, Dict, Optional, TextIO

_ENABLED = os.environ.get("MCQ_EXPLAIN", "").lower() in ("1", "true", "yes")


def enable(flag: bool = True) -> None:
    global _ENABLED
    _ENABLED = bool(flag)


def enabled() -> bool:
    return _ENABLED


def render(event: str, payload: Optional[Dict[str, Any]] = None) -> str:
    if not payload:
        return f"[EXPLAIN] {event}"
    # datetimes and other non-JSON values fall back to str()
    return f"[EXPLAIN] {event} :: {json.dumps(payload, separators=(',', ':'), sort_keys=True, default=str)}"


def trace(event: str, payload: Optional[Dict[str, Any]] = None, *, stream: Optional[TextIO] = None) -> None:
    if not _ENABLED:
        return
    print(render(event, payload), file=stream or sys.stderr)
