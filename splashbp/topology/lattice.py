"""
splashbp/topology/lattice.py

Construction of the 4-connected lattice MRF used for image denoising.

Each pixel (i, j) becomes a variable with K states (quantization levels).
The unary potential encodes a Gaussian noise model around the observed
intensity,

    log phi_ij(k) = -(y_ij - k)^2 / (2 sigma^2)

and every pair of axis-aligned neighbours shares one smoothing BinaryFactor.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

import networkx as nx
import numpy as np

from splashbp.algebra.factor import BinaryFactor, UnaryFactor
from splashbp.errors import InvalidConfiguration
from splashbp.topology.graph import EdgeData, MRFGraph, VertexData

logger = logging.getLogger(__name__)

SMOOTHING_POLICIES: Dict[str, Callable[[BinaryFactor, float], BinaryFactor]] = {
    "agreement": BinaryFactor.set_as_agreement,
    "square": BinaryFactor.set_as_agreement,
    "graduated-penalty": BinaryFactor.set_as_laplace,
    "laplace": BinaryFactor.set_as_laplace,
}


@dataclass(frozen=True)
class LatticeMRF:
    """A finalized lattice model together with its shared edge factor."""
    rows: int
    cols: int
    num_states: int
    graph: MRFGraph
    edge_factor: BinaryFactor

    def vertex_id(self, i: int, j: int) -> int:
        return i * self.cols + j

    def cell(self, vid: int) -> Tuple[int, int]:
        return divmod(vid, self.cols)


def make_edge_factor(num_states: int, smoothing: str, lam: float) -> BinaryFactor:
    """
    Build the shared smoothing factor.

    Args:
        num_states: Number of states K
        smoothing: "agreement" (alias "square") or "graduated-penalty"
            (alias "laplace")
        lam: Smoothness strength

    Returns:
        K x K symmetric BinaryFactor

    Raises:
        InvalidConfiguration: for an unknown policy or invalid lam
    """
    try:
        setter = SMOOTHING_POLICIES[smoothing]
    except KeyError:
        known = ", ".join(sorted(SMOOTHING_POLICIES))
        raise InvalidConfiguration(f"unknown smoothing policy {smoothing!r} (known: {known})") from None
    if not math.isfinite(lam) or lam < 0:
        raise InvalidConfiguration(f"smoothness strength must be finite and >= 0, got {lam}")
    return setter(BinaryFactor(num_states), lam)


def observation_potential(var: int, observed: float, num_states: int, sigma: float) -> UnaryFactor:
    """Normalized Gaussian-noise potential for one pixel."""
    states = np.arange(num_states, dtype=np.float64)
    # a tiny sigma overflows the square to inf, never to 0/0
    with np.errstate(over="ignore"):
        logp = -0.5 * ((observed - states) / sigma) ** 2
    return UnaryFactor(var=var, logp=logp).normalize()


def _validate(intensity: np.ndarray, num_states: int, sigma: float) -> None:
    if intensity.ndim != 2 or intensity.size == 0:
        raise InvalidConfiguration(f"intensity field must be a non-empty 2-D array, got shape {intensity.shape}")
    if not np.all(np.isfinite(intensity)):
        raise InvalidConfiguration("intensity field contains non-finite values")
    if isinstance(num_states, bool) or not isinstance(num_states, (int, np.integer)):
        raise InvalidConfiguration(f"num_states must be an integer, got {num_states!r}")
    if num_states < 1:
        raise InvalidConfiguration(f"need at least one state, got {num_states}")
    if not math.isfinite(sigma) or sigma <= 0:
        raise InvalidConfiguration(f"noise sigma must be finite and > 0, got {sigma}")


def build_lattice_mrf(
    intensity,
    num_states: int,
    sigma: float,
    smoothing: str = "laplace",
    lam: float = 10.0,
) -> LatticeMRF:
    """
    Build and finalize a 4-connected lattice MRF.

    Args:
        intensity: 2-D array of observed (noisy) intensities, in state units
        num_states: Number of quantization levels K
        sigma: Noise standard deviation
        smoothing: Smoothing policy name (see make_edge_factor)
        lam: Smoothness strength

    Returns:
        LatticeMRF with a finalized graph

    Raises:
        InvalidConfiguration: on malformed input, before anything is built
    """
    try:
        field = np.asarray(intensity, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidConfiguration(f"intensity field is not numeric: {e}") from None
    _validate(field, num_states, sigma)
    edge_factor = make_edge_factor(num_states, smoothing, lam)

    rows, cols = field.shape
    lattice = nx.grid_2d_graph(rows, cols)
    graph = MRFGraph()

    for i in range(rows):
        for j in range(cols):
            vid = i * cols + j
            belief = UnaryFactor(var=vid, arity=num_states).uniform().normalize()
            added = graph.add_vertex(VertexData(
                potential=observation_potential(vid, field[i, j], num_states, sigma),
                belief=belief,
            ))
            assert added == vid

    for i in range(rows):
        for j in range(cols):
            vid = i * cols + j
            for ni, nj in sorted(lattice.neighbors((i, j))):
                nbr = ni * cols + nj
                message = UnaryFactor(var=nbr, arity=num_states).uniform().normalize()
                graph.add_edge(vid, nbr, EdgeData(message=message, old_message=message.copy()))

    graph.finalize()
    logger.info(
        "Built %dx%d lattice MRF: %d vertices, %d directed edges, K=%d, smoothing=%s",
        rows, cols, graph.num_vertices, graph.num_edges, num_states, smoothing,
    )
    logger.debug("Out-degree histogram: %s", graph.degree_histogram())
    return LatticeMRF(rows=rows, cols=cols, num_states=num_states, graph=graph, edge_factor=edge_factor)
