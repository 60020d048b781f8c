"""MCQ Trainer package initialization.

The adaptive practice engine lives in the subpackages; the Parquet store is
the sibling ``storage`` package and reporting helpers live in ``analytics``.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
