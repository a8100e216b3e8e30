"""
splashbp/runtime/update.py

The per-vertex loopy belief propagation update.

For a vertex v with potential phi_v, incoming messages m_{u->v} and the
shared edge factor psi:

    b_v       = normalize(phi_v * prod_u m_{u->v})
    cavity_u  = normalize(b_v / m_{u->v})
    m_{v->u}' = damp(normalize(sum_{x_v} psi(x_u, x_v) cavity_u(x_v)))

Incoming messages are snapshotted into old_message before anything is read,
so concurrent writes by neighbours are never observed half way. Outgoing
messages are committed by rebinding to a new factor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from splashbp.algebra.factor import UnaryFactor
from splashbp.config import BPConfig
from splashbp.errors import DimensionMismatch
from splashbp.runtime.scheduler import PriorityScheduler
from splashbp.topology.graph import MRFGraph


@dataclass
class UpdateReport:
    """Residuals produced by one bp_update call, keyed by target vertex."""
    vertex: int
    residuals: Dict[int, float] = field(default_factory=dict)

    @property
    def max_residual(self) -> float:
        return max(self.residuals.values(), default=0.0)


def _validate(graph: MRFGraph, vertex: int, config: BPConfig) -> None:
    vdata = graph.vertex_data(vertex)
    k = vdata.potential.arity
    ef = config.edge_factor
    for got in (ef.arity1, ef.arity2):
        if got != k:
            raise DimensionMismatch("edge_factor", k, got)
    for eid in graph.in_edge_ids(vertex):
        got = graph.edge_data(eid).message.arity
        if got != k:
            raise DimensionMismatch("in_message", k, got)
    for eid in graph.out_edge_ids(vertex):
        edata = graph.edge_data(eid)
        for got in (edata.message.arity, edata.old_message.arity):
            if got != k:
                raise DimensionMismatch("out_message", k, got)


def bp_update(
    graph: MRFGraph,
    vertex: int,
    config: BPConfig,
    scheduler: Optional[PriorityScheduler] = None,
) -> UpdateReport:
    """
    Recompute the belief of vertex and its outgoing messages.

    Cavities and candidate messages are allocated fresh on every call rather
    than taken from per-worker scratch buffers. A committed message object is
    never written again, so a neighbour reading it without the vertex lock
    sees either the previous factor or the new one.

    Args:
        graph: Finalized MRF graph
        vertex: Vertex to update
        config: Shared constants (edge factor, bound, damping)
        scheduler: Receives (target, residual) for every outgoing message
            whose residual exceeds config.bound

    Returns:
        UpdateReport with the residual of every outgoing message

    Raises:
        DimensionMismatch: before any state is modified
    """
    _validate(graph, vertex, config)

    vdata = graph.vertex_data(vertex)
    in_edges = graph.in_edge_ids(vertex)
    out_edges = graph.out_edge_ids(vertex)

    for ineid in in_edges:
        in_edge = graph.edge_data(ineid)
        in_edge.old_message = in_edge.message.copy()

    belief = vdata.potential.copy()
    for ineid in in_edges:
        belief.times(graph.edge_data(ineid).old_message)
    belief.normalize()
    vdata.belief = belief

    report = UpdateReport(vertex=vertex)
    for outeid, ineid in zip(out_edges, in_edges):
        in_edge = graph.edge_data(ineid)
        out_edge = graph.edge_data(outeid)
        target = graph.target(outeid)

        cavity = belief.copy().divide(in_edge.old_message).normalize()

        candidate = UnaryFactor(var=out_edge.message.var)
        candidate.convolve(config.edge_factor, cavity).normalize()
        candidate.damp(out_edge.message, config.damping)

        residual = candidate.residual(out_edge.old_message)
        out_edge.message = candidate
        report.residuals[target] = residual

        if scheduler is not None and residual > config.bound:
            scheduler.push(target, residual)
    return report


def message_residual(graph: MRFGraph, vertex: int, config: BPConfig) -> float:
    """
    Largest change an undamped update of vertex would make to its outgoing
    messages, computed from the current messages without modifying anything.
    """
    _validate(graph, vertex, config)
    in_edges = graph.in_edge_ids(vertex)
    out_edges = graph.out_edge_ids(vertex)

    belief = graph.vertex_data(vertex).potential.copy()
    for ineid in in_edges:
        belief.times(graph.edge_data(ineid).message)
    belief.normalize()

    worst = 0.0
    for outeid, ineid in zip(out_edges, in_edges):
        cavity = belief.copy().divide(graph.edge_data(ineid).message).normalize()
        candidate = UnaryFactor().convolve(config.edge_factor, cavity).normalize()
        worst = max(worst, candidate.residual(graph.edge_data(outeid).message))
    return worst


def max_residual(graph: MRFGraph, config: BPConfig) -> float:
    """message_residual over every vertex of the graph."""
    return max((message_residual(graph, v, config) for v in graph.vertices()), default=0.0)
