"""
Algebra module: log-domain unary and binary factors.
"""

from splashbp.algebra.factor import LOG_FLOOR, BinaryFactor, UnaryFactor

__all__ = [
    "LOG_FLOOR",
    "BinaryFactor",
    "UnaryFactor",
]
