"""
errors.py

Exception taxonomy for topicsweep.

- EmptyCorpusError         → no usable document/term survives vocabulary building.
- InvalidDistributionError → a row handed to the divergence engine is not a
                             probability distribution.
- DegenerateModelError     → a fit produced NaN/Inf (usually K far too large
                             for the corpus).
- EmptySweepError          → a sweep was requested with no K values.
- SweepFailedError         → every K in a sweep failed.
"""

from __future__ import annotations

from typing import Any, Optional


class TopicSweepError(Exception):
    """Base class for all topicsweep errors."""


class EmptyCorpusError(TopicSweepError, ValueError):
    """No document yields any vocabulary term."""


class InvalidDistributionError(TopicSweepError, ValueError):
    """A row is negative somewhere or does not sum to ~1."""

    def __init__(self, message: str, row: Optional[int] = None) -> None:
        super().__init__(message)
        self.row = row


class DegenerateModelError(TopicSweepError, RuntimeError):
    """A fitted model contains NaN/Inf in Phi, Theta or coherence."""

    def __init__(self, message: str, k: Optional[int] = None) -> None:
        if k is not None:
            message = f"K={k}: {message}"
        super().__init__(message)
        self.k = k


class EmptySweepError(TopicSweepError, ValueError):
    """No K values were supplied to a sweep."""


class SweepFailedError(TopicSweepError, RuntimeError):
    """
    Every K value of a sweep failed.

    The (all-failed) SweepResult is attached as `result` so callers can
    inspect the per-K diagnostics.
    """

    def __init__(self, message: str, result: Any = None) -> None:
        super().__init__(message)
        self.result = result
