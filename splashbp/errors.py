"""
splashbp/errors.py

Exception hierarchy for factor algebra, model construction and inference.
"""

from __future__ import annotations


class SplashBPError(ValueError):
    """Base class for all splashbp errors."""


class DimensionMismatch(SplashBPError):
    """Factor operands have unequal arity."""

    def __init__(self, op: str, expected: int, got: int):
        self.op = op
        self.expected = expected
        self.got = got
        super().__init__(f"{op}: arity mismatch, expected {expected} but got {got}")


class InvalidConfiguration(SplashBPError):
    """Unknown policy name, malformed grid or invalid numeric parameter."""


class DegenerateDistribution(SplashBPError):
    """A factor has zero mass in every state (all log-weights are -inf)."""
