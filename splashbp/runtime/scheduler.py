"""
splashbp/runtime/scheduler.py

Residual-priority dispatch of vertex updates.

Every vertex is either pending (with a priority equal to the largest
residual reported against it since it last ran), active (handed to a worker
and not yet marked done) or idle. The heap holds (-priority, vertex) pairs;
raising a priority pushes a fresh pair and the superseded one is discarded
lazily when it surfaces. Ties go to the lowest vertex id.

A vertex that is pushed while active becomes pending again but is not
dispatched until done() is called for it, so no vertex ever runs in two
workers at once.
"""

from __future__ import annotations

import heapq
import logging
import threading
from collections import deque
from typing import Dict, List, Optional, Set, Tuple

from splashbp.topology.graph import MRFGraph

logger = logging.getLogger(__name__)


class PriorityScheduler:
    """Thread-safe max-priority queue over vertex ids with push-to-max semantics."""

    def __init__(self, num_vertices: int):
        self.num_vertices = num_vertices
        self._cond = threading.Condition()
        self._heap: List[Tuple[float, int]] = []
        self._pending: Dict[int, float] = {}
        self._active: Set[int] = set()

    def _check_vertex(self, vertex: int) -> None:
        if not 0 <= vertex < self.num_vertices:
            raise IndexError(f"vertex {vertex} out of range [0, {self.num_vertices})")

    def push(self, vertex: int, priority: float) -> None:
        """Raise the pending priority of vertex to max(current, priority)."""
        self._check_vertex(vertex)
        with self._cond:
            current = self._pending.get(vertex)
            if current is not None and priority <= current:
                return
            self._pending[vertex] = priority
            heapq.heappush(self._heap, (-priority, vertex))
            if vertex not in self._active:
                self._cond.notify()

    def add_all(self, priority: float) -> None:
        """Mark every vertex pending with at least the given priority."""
        for v in range(self.num_vertices):
            self.push(v, priority)

    def _take_top(self) -> Optional[int]:
        # Caller holds the lock.
        deferred = []
        found = None
        while self._heap:
            neg, v = heapq.heappop(self._heap)
            if self._pending.get(v) != -neg:
                continue
            if v in self._active:
                deferred.append((neg, v))
                continue
            del self._pending[v]
            self._active.add(v)
            found = v
            break
        for item in deferred:
            heapq.heappush(self._heap, item)
        return found

    def _drained(self) -> bool:
        return not self._pending and not self._active

    def _wait_for_top(self, block: bool, timeout: Optional[float]) -> Optional[int]:
        # Caller holds the lock.
        v = self._take_top()
        if v is not None or not block:
            return v
        while v is None and not self._drained():
            if not self._cond.wait(timeout):
                return None
            v = self._take_top()
        return v

    def pop(self, block: bool = False, timeout: Optional[float] = None) -> Optional[int]:
        """
        Dispatch the highest-priority pending vertex.

        Args:
            block: Wait while other vertices are still active and nothing is
                dispatchable
            timeout: Maximum wait in seconds when blocking

        Returns:
            Vertex id, or None when nothing can be dispatched (the scheduler
            is drained, or the wait timed out)
        """
        with self._cond:
            return self._wait_for_top(block, timeout)

    def done(self, vertex: int) -> None:
        """Mark a dispatched vertex as finished."""
        with self._cond:
            self._active.discard(vertex)
            self._cond.notify_all()

    def priority(self, vertex: int) -> Optional[float]:
        """Pending priority of vertex, or None if it is not pending."""
        with self._cond:
            return self._pending.get(vertex)

    def max_priority(self) -> float:
        with self._cond:
            return max(self._pending.values(), default=0.0)

    def pending_count(self) -> int:
        with self._cond:
            return len(self._pending)

    def active_count(self) -> int:
        with self._cond:
            return len(self._active)

    def is_drained(self) -> bool:
        with self._cond:
            return self._drained()

    def __len__(self) -> int:
        return self.pending_count()


class SplashScheduler(PriorityScheduler):
    """
    Priority scheduler that dispatches splashes: the top vertex plus a
    breadth-first neighbourhood of other pending, non-active vertices, capped
    at splash_size vertices.
    """

    def __init__(self, graph: MRFGraph, splash_size: int):
        super().__init__(graph.num_vertices)
        if splash_size < 1:
            raise ValueError(f"splash_size must be >= 1, got {splash_size}")
        self.graph = graph
        self.splash_size = splash_size

    def _grow(self, root: int) -> List[int]:
        # Caller holds the lock; root is already active.
        order = [root]
        seen = {root}
        frontier = deque([root])
        while frontier and len(order) < self.splash_size:
            u = frontier.popleft()
            for w in self.graph.neighbors(u):
                if w in seen:
                    continue
                seen.add(w)
                if w in self._active or w not in self._pending:
                    continue
                del self._pending[w]
                self._active.add(w)
                order.append(w)
                frontier.append(w)
                if len(order) >= self.splash_size:
                    break
        return order

    def pop_splash(self, block: bool = False, timeout: Optional[float] = None) -> List[int]:
        """
        Dispatch a splash rooted at the highest-priority vertex.

        Returns:
            Vertices in breadth-first order from the root (empty when nothing
            can be dispatched). Every returned vertex must be passed to done().
        """
        with self._cond:
            root = self._wait_for_top(block, timeout)
            if root is None:
                return []
            order = self._grow(root)
        logger.debug("Splash rooted at %d covers %d vertices", root, len(order))
        return order
