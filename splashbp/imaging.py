"""
splashbp/imaging.py

Synthetic test images and decoding of beliefs back into an image.

Images are plain 2-D float arrays whose values are measured in state units,
so a pixel of value k corresponds to quantization level k.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from splashbp.config import PRED_TYPES
from splashbp.errors import InvalidConfiguration
from splashbp.topology.lattice import LatticeMRF


def paint_sunset(rows: int, cols: int, num_colors: int) -> np.ndarray:
    """
    Paint a quantized sunset: concentric rings around the centre of the
    horizon in the upper half, flat ground (level 0) in the lower half.

    Returns:
        rows x cols float array with values in {0, ..., num_colors - 1}
    """
    if rows < 1 or cols < 1 or num_colors < 1:
        raise InvalidConfiguration(f"cannot paint a {rows}x{cols} image with {num_colors} colors")
    center_r = rows / 2.0
    center_c = cols / 2.0
    max_radius = min(rows, cols) / 2.0

    r = np.arange(rows, dtype=np.float64)[:, np.newaxis]
    c = np.arange(cols, dtype=np.float64)[np.newaxis, :]
    distance = np.sqrt((r - center_r) ** 2 + (c - center_c) ** 2)
    rings = np.floor(np.minimum(1.0, distance / max_radius) * (num_colors - 1))

    img = np.where(r < rows // 2, rings, 0.0)
    return img.astype(np.float64)


def corrupt(image: np.ndarray, sigma: float, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Return a copy of image with additive N(0, sigma^2) noise."""
    if sigma < 0:
        raise InvalidConfiguration(f"noise sigma must be >= 0, got {sigma}")
    if rng is None:
        rng = np.random.default_rng()
    img = np.asarray(image, dtype=np.float64)
    return img + rng.normal(0.0, sigma, size=img.shape)


def decode_beliefs(model: LatticeMRF, pred_type: str = "map") -> np.ndarray:
    """
    Read the current beliefs out as an image.

    Args:
        model: Lattice model after inference
        pred_type: "map" for the most probable state, "exp" for the
            expected state

    Returns:
        rows x cols float array
    """
    if pred_type not in PRED_TYPES:
        raise InvalidConfiguration(f"pred_type must be one of {PRED_TYPES}, got {pred_type!r}")
    graph = model.graph
    out = np.zeros(model.rows * model.cols, dtype=np.float64)
    for v in graph.vertices():
        belief = graph.vertex_data(v).belief
        out[v] = belief.max_asg() if pred_type == "map" else belief.expectation()
    return out.reshape(model.rows, model.cols)


def mean_squared_error(a: np.ndarray, b: np.ndarray) -> float:
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"shape mismatch: {a.shape} vs {b.shape}")
    return float(np.mean((a - b) ** 2))
