"""
Tests for synthetic images and belief decoding.
"""

import numpy as np
import pytest

from splashbp.algebra.factor import UnaryFactor
from splashbp.errors import InvalidConfiguration
from splashbp.imaging import corrupt, decode_beliefs, mean_squared_error, paint_sunset
from splashbp.topology.lattice import build_lattice_mrf


class TestPaintSunset:
    def test_shape_and_levels(self):
        img = paint_sunset(20, 30, 5)
        assert img.shape == (20, 30)
        assert img.min() >= 0
        assert img.max() <= 4
        assert np.array_equal(img, np.round(img))

    def test_ground_is_flat(self):
        img = paint_sunset(20, 20, 5)
        assert np.all(img[10:] == 0)

    def test_rings_grow_outwards(self):
        img = paint_sunset(40, 40, 6)
        # just above the horizon: centre is the sun, edges the outer ring
        row = img[19]
        assert row[20] < row[0]
        assert row[0] == 5

    def test_single_color(self):
        assert np.all(paint_sunset(4, 4, 1) == 0)

    def test_invalid(self):
        with pytest.raises(InvalidConfiguration):
            paint_sunset(0, 4, 3)


class TestCorrupt:
    def test_reproducible(self):
        img = paint_sunset(8, 8, 3)
        a = corrupt(img, 1.0, np.random.default_rng(42))
        b = corrupt(img, 1.0, np.random.default_rng(42))
        assert np.array_equal(a, b)
        assert not np.array_equal(a, img)

    def test_zero_noise(self):
        img = paint_sunset(8, 8, 3)
        assert np.array_equal(corrupt(img, 0.0, np.random.default_rng(0)), img)

    def test_negative_sigma(self):
        with pytest.raises(InvalidConfiguration):
            corrupt(np.zeros((2, 2)), -1.0)


class TestDecodeBeliefs:
    @pytest.fixture
    def model(self):
        model = build_lattice_mrf(np.zeros((1, 2)), num_states=3, sigma=1.0)
        beliefs = [[0.1, 0.7, 0.2], [0.6, 0.1, 0.3]]
        for v, p in enumerate(beliefs):
            model.graph.vertex_data(v).belief = UnaryFactor.from_probabilities(p, var=v)
        return model

    def test_map(self, model):
        assert np.array_equal(decode_beliefs(model, "map"), [[1.0, 0.0]])

    def test_expectation(self, model):
        assert np.allclose(decode_beliefs(model, "exp"), [[1.1, 0.7]])

    def test_unknown_pred_type(self, model):
        with pytest.raises(InvalidConfiguration):
            decode_beliefs(model, "median")


def test_mean_squared_error():
    assert mean_squared_error(np.zeros(4), np.full(4, 2.0)) == pytest.approx(4.0)
    with pytest.raises(ValueError):
        mean_squared_error(np.zeros(3), np.zeros(4))
