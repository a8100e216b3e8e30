"""
Runtime module: scheduling, the BP update and the execution engine.
"""

from splashbp.runtime.scheduler import PriorityScheduler, SplashScheduler
from splashbp.runtime.update import UpdateReport, bp_update, max_residual, message_residual
from splashbp.runtime.engine import Engine, EngineResult, run_engine

__all__ = [
    "PriorityScheduler",
    "SplashScheduler",
    "UpdateReport",
    "bp_update",
    "max_residual",
    "message_residual",
    "Engine",
    "EngineResult",
    "run_engine",
]
