from __future__ import annotations

"""Randomness helpers for question sampling and seeding."""

import os
import random
from typing import Optional

import numpy as np


def seed_from_env() -> Optional[int]:
    """Return the integer in the SEED env var, if any."""
    seed = os.environ.get("SEED")
    if seed is None:
        return None
    try:
        return int(seed)
    except ValueError:
        return None


def seed_if_needed(seed: Optional[int] = None) -> Optional[int]:
    """Seed the global RNGs from an explicit seed or the SEED env var."""
    s = seed if seed is not None else seed_from_env()
    if s is not None:
        random.seed(s)
        np.random.seed(s)
    return s


def make_rng(seed: Optional[int] = None) -> random.Random:
    """A dedicated RNG for the sampler; seeded when a seed is available."""
    return random.Random(seed if seed is not None else seed_from_env())
