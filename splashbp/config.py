"""
splashbp/config.py

Immutable run configuration.

BPConfig carries the constants every update reads (shared edge factor,
residual bound, damping). DenoiseOptions collects the knobs of a full
denoising run with the defaults of the reference application.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from splashbp.algebra.factor import BinaryFactor
from splashbp.errors import InvalidConfiguration

DEFAULT_BOUND = 1e-15
DEFAULT_DAMPING = 0.1
DEFAULT_SEED_PRIORITY = 100.0

PRED_TYPES = ("map", "exp")


@dataclass(frozen=True)
class BPConfig:
    """
    Constants shared by every bp_update call.

    Attributes:
        edge_factor: Smoothing factor shared by all edges (read-only)
        bound: Residual above which a neighbour is rescheduled
        damping: Weight on the previous message when damping
    """
    edge_factor: BinaryFactor
    bound: float = DEFAULT_BOUND
    damping: float = DEFAULT_DAMPING

    def __post_init__(self):
        if not (math.isfinite(self.bound) and self.bound >= 0):
            raise InvalidConfiguration(f"bound must be finite and >= 0, got {self.bound}")
        if not 0.0 <= self.damping <= 1.0:
            raise InvalidConfiguration(f"damping must lie in [0, 1], got {self.damping}")


@dataclass(frozen=True)
class DenoiseOptions:
    """Parameters of a synthetic denoising run."""
    rows: int = 64
    cols: int = 64
    colors: int = 5
    sigma: float = 2.0
    lam: float = 10.0
    smoothing: str = "laplace"
    bound: float = DEFAULT_BOUND
    damping: float = DEFAULT_DAMPING
    pred_type: str = "map"
    splash_size: int = 100
    ncpus: int = 1
    max_updates: Optional[int] = None
    timeout: Optional[float] = None

    def __post_init__(self):
        if self.rows < 1 or self.cols < 1:
            raise InvalidConfiguration(f"grid must be at least 1x1, got {self.rows}x{self.cols}")
        if self.colors < 1:
            raise InvalidConfiguration(f"need at least one color, got {self.colors}")
        if self.pred_type not in PRED_TYPES:
            raise InvalidConfiguration(f"pred_type must be one of {PRED_TYPES}, got {self.pred_type!r}")
        if self.ncpus < 1:
            raise InvalidConfiguration(f"ncpus must be >= 1, got {self.ncpus}")
        if self.splash_size < 0:
            raise InvalidConfiguration(f"splash_size must be >= 0, got {self.splash_size}")
