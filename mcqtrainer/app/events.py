from __future__ import annotations

"""Tiny pub/sub event bus used for advisory signals such as "quiz_suggested"."""

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

QUIZ_SUGGESTED = "quiz_suggested"
QUIZ_SUBMITTED = "quiz_submitted"


class EventBus:
    def __init__(self) -> None:
        self._subs: Dict[str, List[Callable[[Any], None]]] = {}

    def subscribe(self, event: str, handler: Callable[[Any], None]) -> None:
        self._subs.setdefault(event, []).append(handler)

    def unsubscribe(self, event: str, handler: Callable[[Any], None]) -> None:
        handlers = self._subs.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, payload: Any) -> int:
        """Deliver payload to every handler; returns how many handled it without error.

        A failing handler is logged and does not stop the others.
        """
        delivered = 0
        for h in list(self._subs.get(event, [])):
            try:
                h(payload)
                delivered += 1
            except Exception:
                logger.exception("Handler for %s failed", event)
        return delivered
