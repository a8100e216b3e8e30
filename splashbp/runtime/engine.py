"""
splashbp/runtime/engine.py

Asynchronous execution of bp_update over a lattice model.

Worker threads repeatedly take a vertex (or a splash of vertices) from the
shared scheduler, run bp_update under that vertex's lock and hand it back.
The run ends when the scheduler drains or an update-count / wall-time cap is
reached. Hitting a cap is reported through EngineResult, not raised.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional

from splashbp.config import DEFAULT_SEED_PRIORITY, BPConfig
from splashbp.runtime.scheduler import PriorityScheduler, SplashScheduler
from splashbp.runtime.update import bp_update, max_residual
from splashbp.topology.lattice import LatticeMRF

logger = logging.getLogger(__name__)

# Seconds a blocked worker waits before re-checking caps.
POLL_INTERVAL = 0.05


@dataclass
class EngineResult:
    """
    Outcome of an engine run.

    Attributes:
        converged: True iff the scheduler drained before any cap was hit
        update_count: Number of bp_update calls
        runtime: Wall time in seconds
        max_residual: Largest outgoing-message change left at the end
        stopped_by: None, "max_updates", "timeout" or "error"
    """
    converged: bool
    update_count: int
    runtime: float
    max_residual: float
    stopped_by: Optional[str] = None

    @property
    def updates_per_second(self) -> float:
        return self.update_count / self.runtime if self.runtime > 0 else 0.0


class Engine:
    """Runs residual-scheduled belief propagation over one model."""

    def __init__(
        self,
        model: LatticeMRF,
        config: BPConfig,
        *,
        ncpus: int = 1,
        splash_size: int = 0,
        max_updates: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        if ncpus < 1:
            raise ValueError(f"ncpus must be >= 1, got {ncpus}")
        self.model = model
        self.config = config
        self.ncpus = ncpus
        self.splash_size = splash_size
        self.max_updates = max_updates
        self.timeout = timeout

        graph = model.graph
        if splash_size > 0:
            self.scheduler: PriorityScheduler = SplashScheduler(graph, splash_size)
        else:
            self.scheduler = PriorityScheduler(graph.num_vertices)
        self._locks = [threading.Lock() for _ in range(graph.num_vertices)]
        self._count_lock = threading.Lock()
        self._stop = threading.Event()
        self._update_count = 0
        self._stopped_by: Optional[str] = None
        self._start = 0.0

    def _halt(self, reason: str) -> None:
        with self._count_lock:
            if self._stopped_by is None:
                self._stopped_by = reason
        self._stop.set()

    def _claim_update(self) -> bool:
        with self._count_lock:
            if self.max_updates is not None and self._update_count >= self.max_updates:
                if self._stopped_by is None:
                    self._stopped_by = "max_updates"
                self._stop.set()
                return False
            self._update_count += 1
            return True

    def _next_batch(self) -> List[int]:
        if isinstance(self.scheduler, SplashScheduler):
            return self.scheduler.pop_splash(block=True, timeout=POLL_INTERVAL)
        v = self.scheduler.pop(block=True, timeout=POLL_INTERVAL)
        return [] if v is None else [v]

    def _worker(self) -> None:
        graph = self.model.graph
        while not self._stop.is_set():
            if self.timeout is not None and time.perf_counter() - self._start > self.timeout:
                self._halt("timeout")
                break
            batch = self._next_batch()
            if not batch:
                if self.scheduler.is_drained():
                    break
                continue
            # Splashes run leaves -> root, then root -> leaves.
            order = batch if len(batch) == 1 else list(reversed(batch)) + batch[1:]
            try:
                for v in order:
                    if not self._claim_update():
                        break
                    with self._locks[v]:
                        bp_update(graph, v, self.config, self.scheduler)
            except Exception:
                self._halt("error")
                raise
            finally:
                for v in batch:
                    self.scheduler.done(v)

    def run(self, seed_priority: float = DEFAULT_SEED_PRIORITY, measure_residual: bool = True) -> EngineResult:
        """
        Seed every vertex and run until the scheduler drains or a cap is hit.

        Args:
            seed_priority: Initial priority of every vertex
            measure_residual: Compute the final max residual with a dry-run
                sweep over all vertices

        Returns:
            EngineResult
        """
        graph = self.model.graph
        logger.info(
            "Running engine: %d vertices, ncpus=%d, scheduler=%s, bound=%g, damping=%g",
            graph.num_vertices, self.ncpus,
            f"splash({self.splash_size})" if self.splash_size > 0 else "priority",
            self.config.bound, self.config.damping,
        )
        with self._count_lock:
            self._update_count = 0
            self._stopped_by = None
        self._stop.clear()
        self.scheduler.add_all(seed_priority)
        self._start = time.perf_counter()

        if self.ncpus == 1:
            self._worker()
        else:
            with ThreadPoolExecutor(max_workers=self.ncpus, thread_name_prefix="bp-worker") as pool:
                futures = [pool.submit(self._worker) for _ in range(self.ncpus)]
                for fut in futures:
                    fut.result()

        runtime = time.perf_counter() - self._start
        converged = self._stopped_by is None and self.scheduler.is_drained()
        residual = max_residual(graph, self.config) if measure_residual else self.scheduler.max_priority()
        result = EngineResult(
            converged=converged,
            update_count=self._update_count,
            runtime=runtime,
            max_residual=residual,
            stopped_by=self._stopped_by,
        )
        logger.info(
            "Finished in %.3fs: %d updates (%.0f updates/s), converged=%s, max residual=%.3g",
            runtime, result.update_count, result.updates_per_second, converged, residual,
        )
        if not converged:
            logger.warning("Engine stopped by %s with %d vertices pending", self._stopped_by, self.scheduler.pending_count())
        return result


def run_engine(
    model: LatticeMRF,
    config: BPConfig,
    *,
    ncpus: int = 1,
    splash_size: int = 0,
    max_updates: Optional[int] = None,
    timeout: Optional[float] = None,
    seed_priority: float = DEFAULT_SEED_PRIORITY,
) -> EngineResult:
    """Convenience wrapper: build an Engine and run it once."""
    engine = Engine(
        model,
        config,
        ncpus=ncpus,
        splash_size=splash_size,
        max_updates=max_updates,
        timeout=timeout,
    )
    return engine.run(seed_priority=seed_priority)
