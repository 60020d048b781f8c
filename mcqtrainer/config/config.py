from __future__ import annotations

"""Configuration loading and validation for MCQ Trainer.

This module loads YAML configuration, applies defaults, and validates
numeric ranges so the engine can be constructed from a plain dict.
"""

import logging
import os
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..policy.priority import ScoringConfig

logger = logging.getLogger(__name__)

DEFAULT_PREDICTION_WEIGHTS = [0.3, 0.25, 0.2, 0.15, 0.1]


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        print(f"ERROR: Config file not found: {path}", file=sys.stderr)
        sys.exit(1)


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML or defaults.

    Args:
        path: Optional path to a YAML config. If None, use package defaults.

    Returns:
        A dictionary with configuration values.
    """
    if path:
        cfg = _load_yaml(Path(path))
    else:
        cfg = _load_yaml(Path(__file__).with_name("defaults.yml"))
    return cfg


def _positive(section: Dict[str, Any], key: str, default: Any, cast: type = int) -> None:
    try:
        value = cast(section.get(key, default))
    except (TypeError, ValueError):
        value = None
    if value is None or value <= 0:
        logger.warning("Invalid %s=%r, using %r", key, section.get(key), default)
        value = default
    section[key] = value


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply defaults and validate configuration values.

    Args:
        cfg: The raw configuration dictionary.

    Returns:
        The validated and merged configuration dictionary.
    """
    # Shallow defaults for missing sections
    cfg.setdefault("storage", {})
    cfg.setdefault("quiz", {})
    cfg.setdefault("schedule", {})
    cfg.setdefault("scoring", {})
    cfg.setdefault("analytics", {})

    storage = cfg["storage"]
    quiz = cfg["quiz"]
    schedule = cfg["schedule"]
    analytics = cfg["analytics"]

    storage.setdefault("data_dir", "./data")
    env_dir = os.environ.get("MCQ_DATA_DIR")
    if env_dir:
        storage["data_dir"] = env_dir

    quiz.setdefault("questions_per_quiz", 25)
    quiz.setdefault("time_limit_s", 600)
    quiz.setdefault("auto_submit", True)
    _positive(quiz, "questions_per_quiz", 25)
    _positive(quiz, "time_limit_s", 600)
    quiz["auto_submit"] = bool(quiz["auto_submit"])

    schedule.setdefault("cooldown_minutes", 120)
    schedule.setdefault("interval_minutes", 60)
    schedule.setdefault("check_every_s", 60)
    _positive(schedule, "cooldown_minutes", 120, float)
    _positive(schedule, "interval_minutes", 60, float)
    _positive(schedule, "check_every_s", 60, float)

    # Scoring constants go through the pydantic model; fall back wholesale on bad input
    try:
        cfg["scoring"] = ScoringConfig(**(cfg["scoring"] or {})).model_dump()
    except PydanticValidationError as exc:
        logger.warning("Invalid scoring section (%s), using defaults", exc.error_count())
        cfg["scoring"] = ScoringConfig().model_dump()

    analytics.setdefault("smoothing_span", 5)
    analytics.setdefault("prediction_weights", list(DEFAULT_PREDICTION_WEIGHTS))
    _positive(analytics, "smoothing_span", 5)
    weights = analytics.get("prediction_weights")
    if not isinstance(weights, list) or not weights or any(not isinstance(w, (int, float)) or w < 0 for w in weights):
        logger.warning("Invalid prediction_weights %r, using defaults", weights)
        analytics["prediction_weights"] = list(DEFAULT_PREDICTION_WEIGHTS)

    return cfg


def cooldown_of(cfg: Dict[str, Any]) -> timedelta:
    return timedelta(minutes=float(cfg["schedule"]["cooldown_minutes"]))


def interval_of(cfg: Dict[str, Any]) -> timedelta:
    return timedelta(minutes=float(cfg["schedule"]["interval_minutes"]))
