"""
Topology module: graph storage and lattice MRF construction.
"""

from splashbp.topology.graph import EdgeData, MRFGraph, VertexData
from splashbp.topology.lattice import (
    SMOOTHING_POLICIES,
    LatticeMRF,
    build_lattice_mrf,
    make_edge_factor,
    observation_potential,
)

__all__ = [
    "EdgeData",
    "MRFGraph",
    "VertexData",
    "SMOOTHING_POLICIES",
    "LatticeMRF",
    "build_lattice_mrf",
    "make_edge_factor",
    "observation_potential",
]
