from __future__ import annotations

"""CLI for MCQ Trainer using SessionManager and CooldownScheduler."""

import argparse
import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from storage.schema import COLLECTIONS
from storage.store import PersistentStore

from analytics import (
    AnalyticsConfig,
    difficulty,
    get_insights,
    plot_trend,
    predict_score,
    recommendations,
    results_frame,
    score_trend,
)

from .. import __version__
from ..config.config import load_config, validate_config
from ..errors import EmptyBankError, NotReadyError, PartialUpdateError, QuizError
from ..policy.priority import PriorityScorer
from ..samplers.question_sampler import QuestionSampler
from ..stats.stats import format_clock, format_history, format_progress, format_summary
from ..util.randomness import make_rng, seed_if_needed
from . import explain
from .events import QUIZ_SUGGESTED, EventBus
from .importer import import_files, write_sample_csv
from .scheduler import CooldownScheduler
from .session_manager import SessionManager

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    cfg: Dict[str, Any]
    store: PersistentStore
    scheduler: CooldownScheduler
    manager: SessionManager
    bus: EventBus


def build_engine(cfg: Dict[str, Any], *, seed: Optional[int] = None) -> Engine:
    """Wire store, scheduler and session manager from a validated config."""
    store = PersistentStore(Path(cfg["storage"]["data_dir"]))
    store.init()
    bus = EventBus()
    scheduler = CooldownScheduler.from_config(cfg, store, bus=bus)
    sampler = QuestionSampler(PriorityScorer.from_config(cfg), rng=make_rng(seed))
    manager = SessionManager(cfg, store, scheduler, sampler=sampler, bus=bus)
    return Engine(cfg=cfg, store=store, scheduler=scheduler, manager=manager, bus=bus)


# ---- commands ----

def _cmd_init(eng: Engine, args: argparse.Namespace) -> int:
    print(f"Store ready at {eng.store.data_dir} ({eng.store.count_questions()} questions)")
    return 0


def _cmd_import(eng: Engine, args: argparse.Namespace) -> int:
    totals = import_files(eng.store, [Path(p) for p in args.files], category=args.category)
    for name, summary in totals["files"].items():
        if "error" in summary:
            print(f"[ERR] {name}: {summary['error']}")
            continue
        print(f"[OK]  {name}: imported {summary['added']} questions, {summary['errors']} rejected")
        for problem in summary["problems"]:
            print(f"      {problem}")
    print(f"Total imported: {totals['added']} questions")
    return 0 if totals["added"] > 0 or not args.files else 1


def _cmd_sample(eng: Engine, args: argparse.Namespace) -> int:
    print(f"Wrote {write_sample_csv(args.out)}")
    return 0


def _cmd_status(eng: Engine, args: argparse.Namespace) -> int:
    sch = eng.scheduler
    if sch.is_ready():
        print("Quiz available now.")
    else:
        rem = int(sch.time_remaining().total_seconds())
        print(f"Next quiz in {rem // 3600}h {(rem % 3600) // 60}m")
    if sch.next_quiz_time is None:
        sch.recalculate()
    print(f"Next suggested quiz: {sch.describe_wait()}")
    return 0


def _ask(prompt: str) -> str:
    try:
        return input(prompt)
    except EOFError:
        return "q"


def _cmd_quiz(eng: Engine, args: argparse.Namespace, ask: Callable[[str], str] = _ask) -> int:
    mgr = eng.manager
    if args.questions:
        mgr.questions_per_quiz = int(args.questions)
    # The terminal loop polls the countdown itself.
    mgr.auto_submit = False
    try:
        session = mgr.start_session(category=args.category)
    except NotReadyError as exc:
        print(str(exc))
        return 2
    except EmptyBankError as exc:
        print(str(exc))
        return 2

    print(f"Quiz started: {len(session.questions)} questions, {format_clock(session.time_limit)} on the clock.")
    print("Answer with A-D; n/p to move, s to submit, q to quit without saving.")
    while True:
        q = session.current
        if q is None:
            break
        chosen = session.answer_for(q.id)
        print(f"\nQ{session.index + 1}/{len(session.questions)}  [{format_clock(session.time_left(mgr.clock()))} left]")
        print(q.text)
        for letter, text in q.options().items():
            marker = "*" if chosen == letter else " "
            print(f" {marker}{letter}) {text}")
        raw = ask("> ").strip().lower()
        report = mgr.check_timeout()
        if report is not None:
            print("\nTime's up!")
            print(format_summary(report))
            return 0
        if raw == "q":
            mgr.abandon()
            print("Quiz abandoned; nothing was saved.")
            return 0
        if raw == "s":
            break
        if raw == "n" or raw == "":
            if session.next() is q:
                print("Last question; press s to submit.")
            continue
        if raw == "p":
            session.previous()
            continue
        try:
            mgr.record_answer(q.id, raw)
        except QuizError as exc:
            print(str(exc))
            if mgr.active is None:
                # Submitted at expiry while this answer was being typed
                if mgr.last_error is not None or mgr.last_report is None:
                    return 1
                print(format_summary(mgr.last_report))
                return 0
            continue
        session.next()

    try:
        report = mgr.submit()
    except PartialUpdateError as exc:
        print(f"Quiz was only partly saved: {exc}", file=sys.stderr)
        return 1
    print()
    print(format_summary(report))
    return 0


def _cmd_stats(eng: Engine, args: argparse.Namespace) -> int:
    acfg = AnalyticsConfig.from_config(eng.cfg)
    stats = eng.store.get_progress_stats(acfg.history_limit)
    print(format_progress(stats))
    print(f"Bank difficulty: {difficulty(eng.store.get_all_performance())}")
    print(f"Predicted next score: {predict_score(stats.quiz_history, acfg)}%")
    ins = get_insights(stats.quiz_history, acfg)
    for label, key in (("Strong", "strong_points"), ("Weak", "weak_areas"), ("Tip", "suggestions")):
        for line in ins[key]:
            print(f"{label}: {line}")
    for rec in recommendations(stats):
        print(f"[{rec['priority']}] {rec['message']} -> {rec['action']}")
    return 0


def _cmd_history(eng: Engine, args: argparse.Namespace) -> int:
    print(format_history(eng.store.get_quiz_results(args.limit)))
    return 0


def _cmd_explanation(eng: Engine, args: argparse.Namespace) -> int:
    text = " ".join(args.text).strip()
    if not text:
        print("Please enter an explanation")
        return 2
    if not eng.store.update_explanation(args.question_id, text):
        print(f"Question {args.question_id} not found")
        return 1
    print(f"Saved explanation for question {args.question_id}")
    return 0


def _cmd_watch(eng: Engine, args: argparse.Namespace) -> int:
    eng.bus.subscribe(QUIZ_SUGGESTED, lambda at: print(f"[{at:%H:%M}] Time for your scheduled quiz! Run `mcqtrainer quiz`."))
    eng.scheduler.start()
    print(f"Watching; next quiz suggestion: {eng.scheduler.describe_wait()} (Ctrl-C to stop)")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        eng.scheduler.stop()
    return 0


def _cmd_export(eng: Engine, args: argparse.Namespace) -> int:
    n = eng.store.export_ndjson(args.collection, args.out)
    print(f"Exported {n} rows to {args.out}")
    return 0


def _cmd_plot(eng: Engine, args: argparse.Namespace) -> int:
    acfg = AnalyticsConfig.from_config(eng.cfg)
    df = results_frame(eng.store.get_quiz_results(limit=None))
    df = score_trend(df, span=acfg.smoothing_span, category=args.category)
    if not plot_trend(df, category=args.category, save_path=args.out):
        print("No quizzes to plot")
        return 1
    print(f"Saved {args.out}")
    return 0


def _cmd_clear(eng: Engine, args: argparse.Namespace) -> int:
    if not args.yes:
        print("Refusing to clear without --yes")
        return 2
    eng.store.clear()
    print("All data deleted")
    return 0


def _parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mcqtrainer", description="Adaptive multiple-choice practice")
    p.add_argument("--version", action="version", version=f"mcqtrainer {__version__}")
    p.add_argument("--config", default=None, help="Path to YAML config")
    p.add_argument("--data-dir", default=None, help="Override storage.data_dir")
    p.add_argument("--seed", type=int, default=None, help="Seed question sampling")
    p.add_argument("--explain", action="store_true", help="Trace engine milestones")
    p.add_argument("-v", "--verbose", action="store_true")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("init")

    ip = sub.add_parser("import")
    ip.add_argument("files", nargs="+")
    ip.add_argument("--category", default="default")

    sp = sub.add_parser("sample-csv")
    sp.add_argument("out", nargs="?", default="mcq_sample.csv")

    sub.add_parser("status")

    qp = sub.add_parser("quiz")
    qp.add_argument("--questions", type=int, default=None)
    qp.add_argument("--category", default=None)

    sub.add_parser("stats")

    hp = sub.add_parser("history")
    hp.add_argument("--limit", type=int, default=20)

    ep = sub.add_parser("set-explanation")
    ep.add_argument("question_id", type=int)
    ep.add_argument("text", nargs="+")

    sub.add_parser("watch")

    xp = sub.add_parser("export")
    xp.add_argument("collection", choices=COLLECTIONS)
    xp.add_argument("out")

    pp = sub.add_parser("plot")
    pp.add_argument("out", nargs="?", default="reports/score_trend.png")
    pp.add_argument("--category", default=None)

    cp = sub.add_parser("clear")
    cp.add_argument("--yes", action="store_true")
    return p


_COMMANDS = {
    "init": _cmd_init,
    "import": _cmd_import,
    "sample-csv": _cmd_sample,
    "status": _cmd_status,
    "quiz": _cmd_quiz,
    "stats": _cmd_stats,
    "history": _cmd_history,
    "set-explanation": _cmd_explanation,
    "watch": _cmd_watch,
    "export": _cmd_export,
    "plot": _cmd_plot,
    "clear": _cmd_clear,
}


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(levelname)s: %(message)s")
    if args.explain:
        explain.enable()
    seed = seed_if_needed(args.seed)

    cfg = validate_config(load_config(args.config))
    if args.data_dir:
        cfg["storage"]["data_dir"] = args.data_dir

    try:
        eng = build_engine(cfg, seed=seed)
        return _COMMANDS[args.cmd](eng, args)
    except QuizError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
