"""
splashbp/algebra/factor.py

Log-domain discrete factors for pairwise Markov random fields.

A UnaryFactor holds K log-weights over the states of one variable; a
BinaryFactor holds a K1 x K2 log-weight table shared by every edge of the
model. All combining operations stay in log space:

- times:     pointwise product        (log-weights add)
- divide:    pointwise quotient       (log-weights subtract)
- convolve:  sum-product across an edge via logsumexp
- normalize: subtract the log partition function (max-subtraction logsumexp)

UnaryFactor operations mutate in place and return self, so a cavity can be
written as ``belief.copy().divide(msg).normalize()``. Arity checks happen
before any write; a DimensionMismatch leaves the factor untouched.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from scipy.special import logsumexp

from splashbp.errors import DegenerateDistribution, DimensionMismatch

logger = logging.getLogger(__name__)

# Divisor floor used by divide(). Roughly log of the smallest normal double;
# keeps -inf / -inf from turning into NaN when building a cavity.
LOG_FLOOR = -700.0


def _check_arity(op: str, expected: int, got: int) -> None:
    if expected != got:
        raise DimensionMismatch(op, expected, got)


class UnaryFactor:
    """
    Log-weights over the K states of a single variable.

    Attributes:
        var: Id of the variable this factor belongs to
        logp: Length-K float64 array of log-weights
    """

    __slots__ = ("var", "logp")

    def __init__(self, var: int = 0, arity: int = 0, logp: Optional[np.ndarray] = None):
        self.var = var
        if logp is not None:
            self.logp = np.array(logp, dtype=np.float64).reshape(-1)
        else:
            self.logp = np.zeros(arity, dtype=np.float64)

    @classmethod
    def from_probabilities(cls, probs, var: int = 0) -> "UnaryFactor":
        """Build a factor from (unnormalized) probabilities; zeros map to -inf."""
        p = np.asarray(probs, dtype=np.float64)
        with np.errstate(divide="ignore"):
            return cls(var=var, logp=np.log(p))

    @property
    def arity(self) -> int:
        return int(self.logp.shape[0])

    def copy(self) -> "UnaryFactor":
        return UnaryFactor(var=self.var, logp=self.logp.copy())

    def resize(self, arity: int) -> "UnaryFactor":
        """Set the arity; previous content is discarded."""
        self.logp = np.zeros(arity, dtype=np.float64)
        return self

    def uniform(self) -> "UnaryFactor":
        self.logp.fill(0.0)
        return self

    def normalize(self, strict: bool = False) -> "UnaryFactor":
        """
        Rescale so that the exponentiated weights sum to one.

        Args:
            strict: Raise DegenerateDistribution instead of recovering when
                every state has zero mass

        Returns:
            self
        """
        if self.arity == 0:
            return self
        if np.all(np.isneginf(self.logp)):
            if strict:
                raise DegenerateDistribution(
                    f"factor over var {self.var} has no mass in any of {self.arity} states"
                )
            logger.warning("Degenerate factor over var %d; falling back to uniform", self.var)
            self.logp.fill(-np.log(self.arity))
            return self
        self.logp = self.logp - logsumexp(self.logp)
        return self

    def times(self, other: "UnaryFactor") -> "UnaryFactor":
        _check_arity("times", self.arity, other.arity)
        self.logp = self.logp + other.logp
        return self

    def divide(self, other: "UnaryFactor") -> "UnaryFactor":
        """
        Pointwise quotient. The divisor is floored at LOG_FLOOR, so a
        zero-probability divisor state leaves a -inf dividend at -inf and a
        finite dividend finite.
        """
        _check_arity("divide", self.arity, other.arity)
        self.logp = self.logp - np.maximum(other.logp, LOG_FLOOR)
        return self

    def convolve(self, binary: "BinaryFactor", other: "UnaryFactor") -> "UnaryFactor":
        """
        Sum-product message across an edge:

            self[s] = log sum_{s'} exp(binary[s, s'] + other[s'])

        The result takes arity binary.arity1. Costs O(K1 * K2).
        """
        _check_arity("convolve", binary.arity2, other.arity)
        self.logp = logsumexp(binary.logp + other.logp[np.newaxis, :], axis=1)
        return self

    def damp(self, previous: "UnaryFactor", alpha: float) -> "UnaryFactor":
        """
        Convex blend with a previous message in probability space:

            p = alpha * p_previous + (1 - alpha) * p_self

        alpha=1 yields previous, alpha=0 leaves self unchanged.
        """
        if not 0.0 <= alpha <= 1.0:
            raise ValueError(f"damping must lie in [0, 1], got {alpha}")
        _check_arity("damp", self.arity, previous.arity)
        if alpha == 0.0:
            return self
        if alpha == 1.0:
            self.logp = previous.logp.copy()
            return self
        self.logp = np.logaddexp(np.log(alpha) + previous.logp, np.log1p(-alpha) + self.logp)
        return self

    def residual(self, reference: "UnaryFactor") -> float:
        """L1 distance between the two factors in probability space."""
        _check_arity("residual", self.arity, reference.arity)
        return float(np.sum(np.abs(np.exp(self.logp) - np.exp(reference.logp))))

    def probabilities(self) -> np.ndarray:
        """Normalized probability vector (does not modify self)."""
        return np.exp(self.copy().normalize().logp)

    def max_asg(self) -> int:
        """Index of the most probable state; lowest index wins ties."""
        return int(np.argmax(self.logp))

    def expectation(self) -> float:
        """Probability-weighted mean of the state indices."""
        p = self.probabilities()
        return float(np.dot(np.arange(self.arity, dtype=np.float64), p))

    def __repr__(self) -> str:
        vals = ", ".join(f"{v:.4g}" for v in self.logp)
        return f"UnaryFactor(var={self.var}, logp=[{vals}])"


class BinaryFactor:
    """
    K1 x K2 log-weight table coupling two neighbouring variables.

    One instance is shared read-only by every edge of a lattice model, so the
    setters below are only called while the model is being built.
    """

    __slots__ = ("logp",)

    def __init__(self, arity1: int, arity2: Optional[int] = None):
        if arity2 is None:
            arity2 = arity1
        self.logp = np.zeros((arity1, arity2), dtype=np.float64)

    @property
    def arity1(self) -> int:
        return int(self.logp.shape[0])

    @property
    def arity2(self) -> int:
        return int(self.logp.shape[1])

    def uniform(self) -> "BinaryFactor":
        self.logp.fill(0.0)
        return self

    def set_as_agreement(self, lam: float) -> "BinaryFactor":
        """Equal states get log-weight 0, unequal states -lam."""
        i = np.arange(self.arity1)[:, np.newaxis]
        j = np.arange(self.arity2)[np.newaxis, :]
        self.logp = np.where(i == j, 0.0, -float(lam))
        return self

    def set_as_laplace(self, lam: float) -> "BinaryFactor":
        """Penalty proportional to the distance between states: -lam * |i - j|."""
        i = np.arange(self.arity1, dtype=np.float64)[:, np.newaxis]
        j = np.arange(self.arity2, dtype=np.float64)[np.newaxis, :]
        self.logp = -float(lam) * np.abs(i - j)
        return self

    def is_symmetric(self) -> bool:
        return self.arity1 == self.arity2 and bool(np.allclose(self.logp, self.logp.T))

    def __repr__(self) -> str:
        return f"BinaryFactor({self.arity1}x{self.arity2})"
