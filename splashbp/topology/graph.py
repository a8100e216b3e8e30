"""
splashbp/topology/graph.py

Directed graph store for pairwise MRFs.

Vertices carry a potential and a belief; every undirected link is stored as
two directed edges, each carrying its own message slot. The topology is
mirrored in a networkx DiGraph (node = vertex id, edge attribute ``eid``)
that is used for neighbour enumeration and bounded breadth-first expansion.

Once finalize() runs the topology is frozen and the in/out edge lists of every
vertex are paired: ``out_edge_ids(v)[i]`` and ``in_edge_ids(v)[i]`` connect
the same two vertices in opposite directions, and ``reverse(e)`` is an O(1)
table lookup.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Tuple

import networkx as nx

from splashbp.algebra.factor import UnaryFactor
from splashbp.errors import InvalidConfiguration


@dataclass
class VertexData:
    """Per-variable state: fixed potential and current belief."""
    potential: UnaryFactor
    belief: UnaryFactor


@dataclass
class EdgeData:
    """Per directed edge state: current message and the receiver's snapshot."""
    message: UnaryFactor
    old_message: UnaryFactor


class MRFGraph:
    """
    Vertex/edge indexed storage with a build-time reverse-edge table.

    Attributes:
        g: networkx DiGraph mirroring the topology
    """

    def __init__(self):
        self.g = nx.DiGraph()
        self._vdata: List[VertexData] = []
        self._edata: List[EdgeData] = []
        self._endpoints: List[Tuple[int, int]] = []
        self._in: List[Tuple[int, ...]] = []
        self._out: List[Tuple[int, ...]] = []
        self._reverse: List[int] = []
        self._finalized = False

    def _check_mutable(self) -> None:
        if self._finalized:
            raise InvalidConfiguration("graph is finalized; topology can no longer change")

    def add_vertex(self, data: VertexData) -> int:
        """Add a vertex and return its id (ids are dense, in insertion order)."""
        self._check_mutable()
        vid = len(self._vdata)
        self._vdata.append(data)
        self.g.add_node(vid)
        return vid

    def add_edge(self, source: int, target: int, data: EdgeData) -> int:
        """Add the directed edge source -> target and return its id."""
        self._check_mutable()
        n = len(self._vdata)
        if not (0 <= source < n and 0 <= target < n):
            raise InvalidConfiguration(f"edge ({source}, {target}) references unknown vertex")
        if source == target:
            raise InvalidConfiguration(f"self loop on vertex {source}")
        if self.g.has_edge(source, target):
            raise InvalidConfiguration(f"duplicate edge ({source}, {target})")
        eid = len(self._edata)
        self._edata.append(data)
        self._endpoints.append((source, target))
        self.g.add_edge(source, target, eid=eid)
        return eid

    def finalize(self) -> None:
        """
        Freeze the topology and build the pairing tables.

        Raises:
            InvalidConfiguration: if some directed edge has no reverse
        """
        if self._finalized:
            return
        reverse: List[int] = []
        for eid, (s, t) in enumerate(self._endpoints):
            if not self.g.has_edge(t, s):
                raise InvalidConfiguration(f"edge {eid} ({s} -> {t}) has no reverse edge")
            reverse.append(self.g.edges[t, s]["eid"])

        ins: List[Tuple[int, ...]] = []
        outs: List[Tuple[int, ...]] = []
        for v in range(len(self._vdata)):
            out_ids = tuple(sorted(d["eid"] for _, _, d in self.g.out_edges(v, data=True)))
            ins.append(tuple(reverse[e] for e in out_ids))
            outs.append(out_ids)

        self._reverse = reverse
        self._in = ins
        self._out = outs
        self._finalized = True

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    @property
    def num_vertices(self) -> int:
        return len(self._vdata)

    @property
    def num_edges(self) -> int:
        return len(self._edata)

    def vertex_data(self, vid: int) -> VertexData:
        return self._vdata[vid]

    def edge_data(self, eid: int) -> EdgeData:
        return self._edata[eid]

    def source(self, eid: int) -> int:
        return self._endpoints[eid][0]

    def target(self, eid: int) -> int:
        return self._endpoints[eid][1]

    def _check_finalized(self) -> None:
        if not self._finalized:
            raise InvalidConfiguration("graph must be finalized before edge lookups")

    def in_edge_ids(self, vid: int) -> Tuple[int, ...]:
        self._check_finalized()
        return self._in[vid]

    def out_edge_ids(self, vid: int) -> Tuple[int, ...]:
        self._check_finalized()
        return self._out[vid]

    def reverse(self, eid: int) -> int:
        """Id of the edge connecting the same vertices in the other direction."""
        self._check_finalized()
        return self._reverse[eid]

    def neighbors(self, vid: int) -> List[int]:
        return sorted(self.g.successors(vid))

    def vertices(self) -> Iterator[int]:
        return iter(range(len(self._vdata)))

    def degree_histogram(self) -> Dict[int, int]:
        """Number of vertices per out-degree."""
        hist: Dict[int, int] = {}
        for _, d in self.g.out_degree():
            hist[d] = hist.get(d, 0) + 1
        return hist

    def __repr__(self) -> str:
        return f"MRFGraph(vertices={self.num_vertices}, edges={self.num_edges}, finalized={self._finalized})"
