from __future__ import annotations

"""Cooldown scheduler: gates when a quiz may start and when one is suggested.

State is two timestamps kept in the store's settings collection:
``last_quiz_time`` (drives the cooldown) and ``next_quiz_time`` (the
recommendation clock). Every decision samples a fresh "now" from the
injected clock.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from storage.schema import LAST_QUIZ_TIME, NEXT_QUIZ_TIME, ensure_utc
from storage.store import PersistentStore

from ..config.config import cooldown_of, interval_of
from ..errors import StoreError
from .events import QUIZ_SUGGESTED, EventBus
from .explain import trace as xtrace

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(value))
    except ValueError:
        logger.warning("Ignoring unparseable timestamp setting %r", value)
        return None


class CooldownScheduler:
    def __init__(
        self,
        store: PersistentStore,
        *,
        cooldown: timedelta = timedelta(hours=2),
        interval: timedelta = timedelta(hours=1),
        check_every_s: float = 60.0,
        clock: Optional[Clock] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.store = store
        self.cooldown = cooldown
        self.interval = interval
        self.check_every_s = float(check_every_s)
        self.clock = clock or _utcnow
        self.bus = bus or EventBus()
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._running = False

    @classmethod
    def from_config(
        cls,
        cfg: Dict[str, Any],
        store: PersistentStore,
        *,
        clock: Optional[Clock] = None,
        bus: Optional[EventBus] = None,
    ) -> "CooldownScheduler":
        return cls(
            store,
            cooldown=cooldown_of(cfg),
            interval=interval_of(cfg),
            check_every_s=float(cfg["schedule"]["check_every_s"]),
            clock=clock,
            bus=bus,
        )

    def _now(self, now: Optional[datetime] = None) -> datetime:
        return ensure_utc(now if now is not None else self.clock())

    # ---- persisted state ----

    @property
    def last_quiz_time(self) -> Optional[datetime]:
        return _parse(self.store.get_setting(LAST_QUIZ_TIME))

    @property
    def next_quiz_time(self) -> Optional[datetime]:
        return _parse(self.store.get_setting(NEXT_QUIZ_TIME))

    # ---- cooldown ----

    def is_ready(self, now: Optional[datetime] = None) -> bool:
        last = self.last_quiz_time
        if last is None:
            return True
        return self._now(now) - last >= self.cooldown

    def time_remaining(self, now: Optional[datetime] = None) -> timedelta:
        last = self.last_quiz_time
        if last is None:
            return timedelta(0)
        return max(timedelta(0), self.cooldown - (self._now(now) - last))

    def describe_wait(self, now: Optional[datetime] = None) -> str:
        """"Ready now!" or "Xh Ym" until the next recommended quiz."""
        now = self._now(now)
        nxt = self.next_quiz_time
        if nxt is None or nxt <= now:
            return "Ready now!"
        left = int((nxt - now).total_seconds())
        return f"{left // 3600}h {(left % 3600) // 60}m"

    # ---- recommendation clock ----

    def recalculate(self, now: Optional[datetime] = None) -> datetime:
        """Recommend now + interval when ready, else the moment the cooldown ends."""
        now = self._now(now)
        if self.is_ready(now):
            nxt = now + self.interval
        else:
            nxt = now + self.time_remaining(now)
        self.store.put_setting(NEXT_QUIZ_TIME, nxt.isoformat())
        return nxt

    def check(self, now: Optional[datetime] = None) -> bool:
        """Emit "quiz_suggested" if the recommendation is due; returns True when emitted.

        Never starts a quiz. A due recommendation that falls inside the
        cooldown is rescheduled without a signal.
        """
        now = self._now(now)
        nxt = self.next_quiz_time
        if nxt is None:
            self.recalculate(now)
            return False
        if now < nxt:
            return False
        if not self.is_ready(now):
            nxt = self.recalculate(now)
            xtrace("quiz_suggestion_deferred", {"next": nxt.isoformat()})
            return False
        logger.info("Quiz suggested at %s", now.isoformat())
        xtrace("quiz_suggested", {"at": now.isoformat()})
        self.bus.emit(QUIZ_SUGGESTED, now)
        self.recalculate(now)
        return True

    def record_quiz_taken(self, now: Optional[datetime] = None) -> datetime:
        now = self._now(now)
        self.store.put_setting(LAST_QUIZ_TIME, now.isoformat())
        return self.recalculate(now)

    # ---- periodic check ----

    def start(self) -> None:
        self.stop()
        nxt = self.recalculate()
        with self._lock:
            self._running = True
            self._arm_timer()
        logger.info("Scheduler started. Next quiz at %s", nxt.isoformat())

    def stop(self) -> None:
        with self._lock:
            self._running = False
            if self._timer:
                self._timer.cancel()
                self._timer = None

    def is_running(self) -> bool:
        return self._running

    def _arm_timer(self) -> None:
        self._timer = threading.Timer(self.check_every_s, self._on_tick)
        self._timer.daemon = True
        self._timer.start()

    def _on_tick(self) -> None:
        try:
            self.check()
        except StoreError:
            logger.exception("Scheduled quiz check failed")
        finally:
            with self._lock:
                if self._running:
                    self._arm_timer()
