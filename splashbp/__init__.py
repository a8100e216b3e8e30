"""
splashbp: Residual Splash Belief Propagation

Asynchronous, residual-prioritized loopy belief propagation on pairwise
discrete Markov random fields, applied to image denoising.

Key components:
- algebra: Log-domain unary and binary factors
- topology: Graph storage and 4-connected lattice MRF construction
- runtime: Residual-priority scheduling, the per-vertex BP update and the
  threaded execution engine
- imaging: Synthetic test images and belief decoding
- solver: High-level denoising API
"""

__version__ = "1.0.0"
__author__ = "splashbp Team"

from splashbp.errors import (
    SplashBPError,
    DimensionMismatch,
    InvalidConfiguration,
    DegenerateDistribution,
)
from splashbp.algebra.factor import UnaryFactor, BinaryFactor
from splashbp.config import BPConfig, DenoiseOptions
from splashbp.topology.graph import MRFGraph
from splashbp.topology.lattice import LatticeMRF, build_lattice_mrf, make_edge_factor
from splashbp.runtime.scheduler import PriorityScheduler, SplashScheduler
from splashbp.runtime.update import bp_update
from splashbp.runtime.engine import Engine, EngineResult, run_engine
from splashbp.imaging import paint_sunset, corrupt, decode_beliefs
from splashbp.solver import denoise, run_synthetic, DenoiseResult

__all__ = [
    # Errors
    "SplashBPError",
    "DimensionMismatch",
    "InvalidConfiguration",
    "DegenerateDistribution",
    # Factors
    "UnaryFactor",
    "BinaryFactor",
    # Configuration
    "BPConfig",
    "DenoiseOptions",
    # Model
    "MRFGraph",
    "LatticeMRF",
    "build_lattice_mrf",
    "make_edge_factor",
    # Runtime
    "PriorityScheduler",
    "SplashScheduler",
    "bp_update",
    "Engine",
    "EngineResult",
    "run_engine",
    # Imaging and solver
    "paint_sunset",
    "corrupt",
    "decode_beliefs",
    "denoise",
    "run_synthetic",
    "DenoiseResult",
]
