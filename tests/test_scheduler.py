"""
Tests for residual-priority scheduling.
"""

import threading

import numpy as np
import pytest

from splashbp.runtime.scheduler import PriorityScheduler, SplashScheduler
from splashbp.topology.lattice import build_lattice_mrf


class TestPriorityScheduler:
    def test_push_keeps_maximum(self):
        s = PriorityScheduler(4)
        s.push(1, 5.0)
        s.push(1, 2.0)
        assert s.priority(1) == 5.0
        s.push(1, 9.0)
        assert s.priority(1) == 9.0

    def test_no_duplicates(self):
        s = PriorityScheduler(4)
        s.push(2, 1.0)
        s.push(2, 3.0)
        s.push(2, 2.0)
        assert len(s) == 1
        assert s.pop() == 2
        assert s.pop() is None

    def test_pop_order(self):
        s = PriorityScheduler(5)
        s.push(0, 1.0)
        s.push(3, 7.0)
        s.push(4, 2.0)
        assert [s.pop(), s.pop(), s.pop()] == [3, 4, 0]
        assert s.pop() is None

    def test_ties_go_to_lowest_id(self):
        s = PriorityScheduler(5)
        s.add_all(100.0)
        assert [s.pop() for _ in range(5)] == [0, 1, 2, 3, 4]

    def test_pop_makes_vertex_idle(self):
        s = PriorityScheduler(3)
        s.push(1, 4.0)
        assert s.pop() == 1
        assert s.priority(1) is None
        s.done(1)
        s.push(1, 0.5)
        assert s.priority(1) == 0.5

    def test_active_vertex_not_dispatched_twice(self):
        s = PriorityScheduler(3)
        s.push(0, 1.0)
        assert s.pop() == 0
        s.push(0, 10.0)
        s.push(1, 0.1)
        # 0 is pending again but still running elsewhere
        assert s.pop() == 1
        assert s.pop() is None
        s.done(0)
        assert s.pop() == 0

    def test_drained(self):
        s = PriorityScheduler(2)
        assert s.is_drained()
        s.push(0, 1.0)
        assert not s.is_drained()
        v = s.pop()
        assert not s.is_drained()
        s.done(v)
        assert s.is_drained()
        assert s.pop(block=True) is None

    def test_blocking_pop_times_out(self):
        s = PriorityScheduler(2)
        s.push(0, 1.0)
        s.pop()
        assert s.pop(block=True, timeout=0.01) is None

    def test_out_of_range(self):
        s = PriorityScheduler(2)
        with pytest.raises(IndexError):
            s.push(2, 1.0)

    def test_concurrent_pushes_keep_maximum(self):
        s = PriorityScheduler(10)
        rng = np.random.default_rng(0)
        values = rng.uniform(0.0, 100.0, size=(8, 10, 20))

        def worker(block):
            for v in range(10):
                for p in block[v]:
                    s.push(v, float(p))

        threads = [threading.Thread(target=worker, args=(values[t],)) for t in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for v in range(10):
            assert s.priority(v) == pytest.approx(values[:, v, :].max())
        assert len(s) == 10

    def test_workers_never_share_a_vertex(self):
        graph = build_lattice_mrf(np.zeros((4, 4)), num_states=2, sigma=1.0).graph
        s = PriorityScheduler(graph.num_vertices)
        guard = threading.Lock()
        held = set()
        unpopped = [False] * graph.num_vertices
        overlaps = []
        budget = [2000]

        def push(v, priority):
            with guard:
                unpopped[v] = True
            s.push(v, priority)

        for v in graph.vertices():
            push(v, 1.0)

        def worker():
            while True:
                v = s.pop(block=True, timeout=0.01)
                if v is None:
                    if s.is_drained():
                        return
                    continue
                with guard:
                    if v in held:
                        overlaps.append(v)
                    held.add(v)
                    unpopped[v] = False
                    budget[0] -= 1
                    repush = budget[0] > 0
                if repush:
                    for u in graph.neighbors(v):
                        push(u, float(u + 1))
                with guard:
                    held.discard(v)
                s.done(v)

        threads = [threading.Thread(target=worker) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30.0)

        assert not any(t.is_alive() for t in threads)
        assert overlaps == []
        assert s.is_drained()
        assert not any(unpopped)


class TestSplashScheduler:
    @pytest.fixture
    def graph(self):
        return build_lattice_mrf(np.zeros((3, 3)), num_states=2, sigma=1.0).graph

    def test_breadth_first_order(self, graph):
        s = SplashScheduler(graph, splash_size=4)
        s.add_all(1.0)
        assert s.pop_splash() == [0, 1, 3, 2]
        assert s.active_count() == 4
        assert s.pending_count() == 5

    def test_rooted_at_top_priority(self, graph):
        s = SplashScheduler(graph, splash_size=3)
        s.add_all(1.0)
        s.push(4, 50.0)
        splash = s.pop_splash()
        assert splash[0] == 4
        assert len(splash) == 3
        assert set(splash[1:]) <= set(graph.neighbors(4))

    def test_only_pending_vertices_join(self, graph):
        s = SplashScheduler(graph, splash_size=9)
        s.push(0, 2.0)
        s.push(2, 1.0)
        assert s.pop_splash() == [0]
        assert s.pop_splash() == [2]
        assert s.pop_splash() == []

    def test_skips_active_vertices(self, graph):
        s = SplashScheduler(graph, splash_size=9)
        s.add_all(1.0)
        first = s.pop_splash()
        assert len(first) == 9
        s.push(1, 3.0)
        # 1 is active; it becomes dispatchable only after done()
        assert s.pop_splash() == []
        for v in first:
            s.done(v)
        assert s.pop_splash() == [1]

    def test_invalid_size(self, graph):
        with pytest.raises(ValueError):
            SplashScheduler(graph, splash_size=0)
