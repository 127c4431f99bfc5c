"""Tests for the local search optimizer."""

from dataclasses import replace

import numpy as np
import pytest

from nmf_cluster.config import (
    DEFAULT_CONFIG,
    POISSON_CONFIG,
    ClusteringConfig,
    InitStrategy,
    ObjectiveConfig,
    OptimizerConfig,
)
from nmf_cluster.graph import fixture_graph
from nmf_cluster.optimizer import (
    LocalSearchOptimizer,
    ObjectiveError,
    SquaredLossObjective,
    cluster_graph,
)
from nmf_cluster.sparse import SparseMatrix, SparseVector


def _with_optimizer(**kwargs) -> ClusteringConfig:
    return replace(DEFAULT_CONFIG, optimizer=OptimizerConfig(**kwargs))


class TestInitialization:
    """Starting clusterings."""

    def test_singleton_init(self) -> None:
        opt = LocalSearchOptimizer(fixture_graph("two_triangles"), DEFAULT_CONFIG)
        opt.initialize()
        assert opt.state.max_num_clus == 6
        for i, vec in enumerate(opt.state):
            assert vec == SparseVector([(i, 1.0)])
        assert opt.state.cluster_sizes.tolist() == [1] * 6

    def test_singleton_init_wraps_when_fewer_clusters(self) -> None:
        config = _with_optimizer(max_num_clus=2)
        opt = LocalSearchOptimizer(fixture_graph("two_triangles"), config)
        opt.initialize()
        assert opt.state.cluster_sizes.tolist() == [3, 3]

    def test_empty_init(self) -> None:
        config = _with_optimizer(init=InitStrategy.EMPTY)
        opt = LocalSearchOptimizer(fixture_graph("ones3"), config)
        opt.initialize()
        assert opt.state.nnz == 0

    def test_non_square_graph_rejected(self) -> None:
        with pytest.raises(ValueError, match="square"):
            LocalSearchOptimizer(SparseMatrix.from_dense(1, 2, [1, 1]), DEFAULT_CONFIG)


class TestMoves:
    """Candidate generation and single-node improvement."""

    def test_first_move_on_ones3(self) -> None:
        """From singletons, node 2 joins a neighbour's cluster: loss 3 -> 2."""
        opt = LocalSearchOptimizer(fixture_graph("ones3"), DEFAULT_CONFIG)
        opt.initialize()
        assert opt.objective.loss(opt.state) == pytest.approx(3.0)

        delta = opt.improve_node(2)
        assert delta == pytest.approx(-1.0)
        assert opt.objective.loss(opt.state) == pytest.approx(2.0)
        assert opt.state[2].nnz == 1
        assert opt.state[2].clusters()[0] in (0, 1)

    def test_candidates_respect_cap(self) -> None:
        config = _with_optimizer(max_cluster_per_node=1)
        opt = LocalSearchOptimizer(fixture_graph("ones3"), config)
        opt.initialize()
        profile = opt.objective.neighbor_profile(opt.state, 0)
        for label, vec in opt.candidates(0, profile):
            assert vec.nnz <= 1, label
            assert not label.startswith("join")

    def test_candidates_include_all_kinds(self) -> None:
        opt = LocalSearchOptimizer(
            fixture_graph("triangle3"), _with_optimizer(max_num_clus=4)
        )
        opt.initialize()
        profile = opt.objective.neighbor_profile(opt.state, 0)
        labels = [label for label, _ in opt.candidates(0, profile)]
        assert "remove 0" in labels
        assert any(label.startswith("scale 0") for label in labels)
        assert "join 1" in labels and "move 2" in labels
        # cluster 3 is empty after singleton init of 3 nodes
        assert "join 3" in labels and "move 3" in labels

    def test_no_improving_move_returns_zero(self) -> None:
        opt = LocalSearchOptimizer(fixture_graph("ones3"), DEFAULT_CONFIG)
        opt.state.clear()
        for i in range(3):
            opt.state.add(i, 0, 1.0)
        opt.objective.reset(opt.state)
        before = opt.state[1]
        assert opt.improve_node(1) == 0.0
        assert opt.state[1] == before


class TestRun:
    """Full runs: monotone loss, convergence, determinism."""

    @pytest.mark.parametrize("graph_name", ["ones3", "triangle3", "two_triangles"])
    def test_loss_never_increases(self, graph_name: str) -> None:
        result = cluster_graph(fixture_graph(graph_name), DEFAULT_CONFIG)
        history = result.loss_history
        assert len(history) == result.num_passes + 1
        for before, after in zip(history, history[1:]):
            assert after <= before + 1e-9

    def test_ones3_improves_on_singletons(self) -> None:
        result = cluster_graph(fixture_graph("ones3"), DEFAULT_CONFIG)
        assert result.loss_history[0] == pytest.approx(3.0)
        assert result.final_loss < 2.0
        assert result.num_moves > 0
        assert result.state.verify_aggregates() == []

    def test_converged_run_ends_with_stationary_pass(self) -> None:
        result = cluster_graph(fixture_graph("two_triangles"), DEFAULT_CONFIG)
        if result.converged:
            assert result.loss_history[-1] == pytest.approx(result.loss_history[-2])
        else:
            assert result.num_passes == DEFAULT_CONFIG.optimizer.num_iter

    def test_single_pass_budget(self) -> None:
        result = cluster_graph(fixture_graph("ones3"), _with_optimizer(num_iter=1))
        assert result.num_passes == 1
        assert len(result.loss_history) == 2

    def test_zero_budget_keeps_initial_state(self) -> None:
        result = cluster_graph(fixture_graph("ones3"), _with_optimizer(num_iter=0))
        assert result.num_passes == 0
        assert not result.converged
        assert result.loss_history == [pytest.approx(3.0)]

    def test_deterministic_for_seed(self) -> None:
        graph = fixture_graph("two_triangles")
        a = cluster_graph(graph, POISSON_CONFIG)
        b = cluster_graph(graph, POISSON_CONFIG)
        assert a.loss_history == b.loss_history
        assert list(a.state) == list(b.state)

    def test_cap_respected_throughout(self) -> None:
        config = replace(
            POISSON_CONFIG,
            optimizer=OptimizerConfig(max_cluster_per_node=1, check_invariants=True),
        )
        result = cluster_graph(fixture_graph("two_triangles"), config)
        assert all(vec.nnz <= 1 for vec in result.state)

    def test_check_invariants_run(self) -> None:
        config = _with_optimizer(check_invariants=True, verbosity=2)
        result = cluster_graph(fixture_graph("two_triangles"), config)
        assert result.state.verify_aggregates() == []

    def test_empty_init_finds_clusters(self) -> None:
        config = _with_optimizer(init=InitStrategy.EMPTY)
        result = cluster_graph(fixture_graph("ones3"), config)
        assert result.final_loss < result.loss_history[0]
        assert result.state.nnz > 0

    def test_export_after_run(self) -> None:
        result = cluster_graph(fixture_graph("two_triangles"), DEFAULT_CONFIG)
        mat = result.state.to_sparse_matrix()
        assert mat.cols == 6
        assert mat.rows == len(result.state.non_empty_clusters())
        assert mat.nnz == result.state.nnz

    def test_non_finite_loss_raises(self) -> None:
        graph = SparseMatrix.from_dense(2, 2, [0, np.inf, np.inf, 0])
        with pytest.raises(ObjectiveError):
            cluster_graph(graph, DEFAULT_CONFIG)

    def test_custom_objective_is_used(self) -> None:
        graph = fixture_graph("triangle3")
        objective = SquaredLossObjective(graph, ObjectiveConfig(weight_beta=5.0))
        opt = LocalSearchOptimizer(graph, DEFAULT_CONFIG, objective)
        assert opt.objective is objective
        result = opt.run()
        # a heavy weight penalty drives memberships away
        assert result.final_loss <= result.loss_history[0]
