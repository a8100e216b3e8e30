"""
Tests for graph storage and lattice MRF construction.
"""

import numpy as np
import pytest

from splashbp.algebra.factor import UnaryFactor
from splashbp.config import BPConfig
from splashbp.errors import InvalidConfiguration
from splashbp.runtime.engine import run_engine
from splashbp.topology.graph import EdgeData, MRFGraph, VertexData
from splashbp.topology.lattice import build_lattice_mrf, make_edge_factor, observation_potential


def _vertex(k=2):
    return VertexData(potential=UnaryFactor(arity=k), belief=UnaryFactor(arity=k))


def _edge(k=2):
    return EdgeData(message=UnaryFactor(arity=k), old_message=UnaryFactor(arity=k))


class TestMRFGraph:
    def test_add_and_pair(self):
        g = MRFGraph()
        a = g.add_vertex(_vertex())
        b = g.add_vertex(_vertex())
        e_ab = g.add_edge(a, b, _edge())
        e_ba = g.add_edge(b, a, _edge())
        g.finalize()

        assert g.reverse(e_ab) == e_ba
        assert g.reverse(e_ba) == e_ab
        assert g.out_edge_ids(a) == (e_ab,)
        assert g.in_edge_ids(a) == (e_ba,)
        assert g.neighbors(a) == [b]

    def test_missing_reverse_rejected(self):
        g = MRFGraph()
        a = g.add_vertex(_vertex())
        b = g.add_vertex(_vertex())
        g.add_edge(a, b, _edge())
        with pytest.raises(InvalidConfiguration):
            g.finalize()

    def test_frozen_after_finalize(self):
        g = MRFGraph()
        g.add_vertex(_vertex())
        g.finalize()
        assert g.is_finalized
        with pytest.raises(InvalidConfiguration):
            g.add_vertex(_vertex())

    def test_lookups_require_finalize(self):
        g = MRFGraph()
        g.add_vertex(_vertex())
        with pytest.raises(InvalidConfiguration):
            g.in_edge_ids(0)

    def test_rejects_bad_edges(self):
        g = MRFGraph()
        a = g.add_vertex(_vertex())
        b = g.add_vertex(_vertex())
        with pytest.raises(InvalidConfiguration):
            g.add_edge(a, a, _edge())
        with pytest.raises(InvalidConfiguration):
            g.add_edge(a, 5, _edge())
        g.add_edge(a, b, _edge())
        with pytest.raises(InvalidConfiguration):
            g.add_edge(a, b, _edge())


class TestLatticeBuilder:
    @pytest.fixture
    def model(self):
        intensity = np.arange(9, dtype=np.float64).reshape(3, 3) % 3
        return build_lattice_mrf(intensity, num_states=3, sigma=1.0, smoothing="laplace", lam=2.0)

    def test_counts(self, model):
        g = model.graph
        assert g.num_vertices == 9
        # 12 undirected lattice links, two directed edges each
        assert g.num_edges == 24
        assert g.is_finalized

    def test_boundary_degrees(self, model):
        g = model.graph
        assert g.degree_histogram() == {2: 4, 3: 4, 4: 1}
        assert len(g.out_edge_ids(model.vertex_id(0, 0))) == 2
        assert len(g.out_edge_ids(model.vertex_id(1, 1))) == 4

    def test_four_neighbourhood(self, model):
        g = model.graph
        center = model.vertex_id(1, 1)
        expected = sorted(model.vertex_id(i, j) for i, j in [(0, 1), (2, 1), (1, 0), (1, 2)])
        assert g.neighbors(center) == expected

    def test_reverse_pairing(self, model):
        g = model.graph
        for e in range(g.num_edges):
            r = g.reverse(e)
            assert g.source(r) == g.target(e)
            assert g.target(r) == g.source(e)
            assert g.reverse(r) == e
        for v in g.vertices():
            for out_e, in_e in zip(g.out_edge_ids(v), g.in_edge_ids(v)):
                assert g.reverse(out_e) == in_e
                assert g.target(out_e) == g.source(in_e)

    def test_potential_follows_noise_model(self, model):
        vid = model.vertex_id(0, 1)  # observed intensity 1.0
        pot = model.graph.vertex_data(vid).potential
        expected = np.exp(-0.5 * (1.0 - np.arange(3)) ** 2)
        expected /= expected.sum()
        assert np.allclose(np.exp(pot.logp), expected)
        assert pot.var == vid

    def test_beliefs_and_messages_start_uniform(self, model):
        g = model.graph
        for v in g.vertices():
            assert np.allclose(np.exp(g.vertex_data(v).belief.logp), 1.0 / 3.0)
        for e in range(g.num_edges):
            edata = g.edge_data(e)
            assert np.allclose(np.exp(edata.message.logp), 1.0 / 3.0)
            assert edata.message is not edata.old_message
            assert edata.message.var == g.target(e)

    def test_cell_roundtrip(self, model):
        assert model.cell(model.vertex_id(2, 1)) == (2, 1)

    def test_single_pixel(self):
        model = build_lattice_mrf(np.zeros((1, 1)), num_states=2, sigma=1.0)
        assert model.graph.num_vertices == 1
        assert model.graph.num_edges == 0

    def test_observation_potential_normalized(self):
        pot = observation_potential(0, 2.3, 5, 0.7)
        assert np.sum(np.exp(pot.logp)) == pytest.approx(1.0)
        assert pot.max_asg() == 2


class TestInvalidConfiguration:
    def test_unknown_smoothing(self):
        with pytest.raises(InvalidConfiguration):
            build_lattice_mrf(np.zeros((2, 2)), num_states=2, sigma=1.0, smoothing="gaussian")

    def test_policy_aliases(self):
        assert np.array_equal(
            make_edge_factor(3, "square", 1.0).logp,
            make_edge_factor(3, "agreement", 1.0).logp,
        )
        assert np.array_equal(
            make_edge_factor(3, "laplace", 1.0).logp,
            make_edge_factor(3, "graduated-penalty", 1.0).logp,
        )

    @pytest.mark.parametrize("field", [np.zeros(4), np.zeros((0, 3)), np.zeros((2, 2, 2))])
    def test_malformed_grid(self, field):
        with pytest.raises(InvalidConfiguration):
            build_lattice_mrf(field, num_states=2, sigma=1.0)

    def test_non_finite_intensity(self):
        with pytest.raises(InvalidConfiguration):
            build_lattice_mrf(np.array([[0.0, np.nan]]), num_states=2, sigma=1.0)

    def test_bad_sigma(self):
        with pytest.raises(InvalidConfiguration):
            build_lattice_mrf(np.zeros((2, 2)), num_states=2, sigma=0.0)

    def test_negative_lambda(self):
        with pytest.raises(InvalidConfiguration):
            make_edge_factor(2, "agreement", -1.0)

    def test_non_integer_num_states(self):
        with pytest.raises(InvalidConfiguration):
            build_lattice_mrf(np.zeros((2, 2)), num_states=2.0, sigma=1.0)
        with pytest.raises(InvalidConfiguration):
            build_lattice_mrf(np.zeros((2, 2)), num_states=True, sigma=1.0)

    def test_numpy_integer_num_states(self):
        model = build_lattice_mrf(np.zeros((2, 2)), num_states=np.int64(3), sigma=1.0)
        assert model.graph.vertex_data(0).potential.arity == 3


class TestTinySigma:
    def test_potentials_stay_finite(self):
        model = build_lattice_mrf(np.zeros((2, 2)), num_states=3, sigma=1e-200)
        for v in model.graph.vertices():
            pot = model.graph.vertex_data(v).potential
            assert not np.any(np.isnan(pot.logp))
            assert pot.logp[0] == pytest.approx(0.0)
            assert np.all(np.isneginf(pot.logp[1:]))
            assert pot.max_asg() == 0

    def test_inference_stays_finite(self):
        model = build_lattice_mrf(np.zeros((2, 2)), num_states=3, sigma=1e-200)
        config = BPConfig(edge_factor=model.edge_factor, bound=1e-10)
        run_engine(model, config, max_updates=200)
        g = model.graph
        for v in g.vertices():
            belief = g.vertex_data(v).belief
            assert not np.any(np.isnan(belief.logp))
            assert np.sum(belief.probabilities()) == pytest.approx(1.0)
        for e in range(g.num_edges):
            assert not np.any(np.isnan(g.edge_data(e).message.logp))
