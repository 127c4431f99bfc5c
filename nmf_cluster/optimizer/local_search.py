"""Local search over single-node membership changes.

Each pass visits every node once in a seeded random order. For the
visited node a small set of candidate membership vectors is scored with
the objective's incremental delta, and the best one is written into the
clustering state if it lowers the loss by more than the tolerance. A pass
without accepted moves ends the search.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator

import numpy as np

from nmf_cluster.clustering.state import ClusteringState
from nmf_cluster.config.params import ClusteringConfig, InitStrategy
from nmf_cluster.optimizer.objective import Objective, SquaredLossObjective
from nmf_cluster.sparse.errors import ContractViolation
from nmf_cluster.sparse.matrix import SparseMatrix
from nmf_cluster.sparse.vector import SparseVector

log = logging.getLogger(__name__)


@dataclass
class OptimizationResult:
    """Outcome of a local search run.

    ``loss_history[0]`` is the loss after initialisation; each following
    entry is the loss after one pass.
    """

    state: ClusteringState
    loss_history: list[float] = field(default_factory=list)
    num_passes: int = 0
    num_moves: int = 0
    converged: bool = False

    @property
    def final_loss(self) -> float:
        return self.loss_history[-1]


class LocalSearchOptimizer:
    """Greedy single-node local search on a ClusteringState.

    Args:
        graph: Square adjacency matrix of the graph to cluster.
        config: Run configuration.
        objective: Loss to minimise; defaults to SquaredLossObjective
            built from ``config.objective``.

    Raises:
        ValueError: If the graph is not square.
    """

    def __init__(
        self,
        graph: SparseMatrix,
        config: ClusteringConfig,
        objective: Objective | None = None,
    ) -> None:
        if graph.rows != graph.cols:
            raise ValueError(f"Graph must be square, got shape {graph.shape}")
        self.config = config
        opt = config.optimizer
        num_node = graph.rows
        max_num_clus = opt.max_num_clus if opt.max_num_clus is not None else num_node
        self.state = ClusteringState(
            num_node, max_num_clus, max_clus_per_node=opt.max_cluster_per_node
        )
        self.objective = objective or SquaredLossObjective(graph, config.objective)
        self._rng = np.random.default_rng(config.seed)

    # ── Setup ────────────────────────────────────────────────────────

    def initialize(self) -> None:
        """Reset the state to the configured starting clustering."""
        self.state.clear()
        opt = self.config.optimizer
        if opt.init is InitStrategy.SINGLETON and self.state.max_num_clus > 0:
            for i in range(self.state.size):
                self.state.add(i, i % self.state.max_num_clus, opt.initial_weight)
        self.objective.reset(self.state)

    # ── Moves ────────────────────────────────────────────────────────

    def candidates(
        self, node: int, profile: np.ndarray
    ) -> Iterator[tuple[str, SparseVector]]:
        """Candidate replacement memberships for ``node``.

        Yields (label, vector) pairs: dropping a membership, rescaling a
        weight, joining a neighbouring cluster, moving to a neighbouring
        cluster, and moving to or joining an empty cluster. Joins that
        would exceed ``max_cluster_per_node`` are not proposed.
        """
        opt = self.config.optimizer
        old = self.state[node]
        cap = opt.max_cluster_per_node
        can_join = cap is None or old.nnz < cap

        for item in old:
            dropped = old.copy()
            dropped.remove(item.clus)
            yield f"remove {item.clus}", dropped

            for step in opt.weight_steps:
                scaled = dropped.copy()
                scaled.insert(item.clus, item.weight * step)
                yield f"scale {item.clus} x{step:g}", scaled

        targets = [int(k) for k in np.flatnonzero(profile > 0) if not old.contains(int(k))]
        fresh = self.state.empty_cluster()
        if fresh is not None:
            targets.append(fresh)

        for k in targets:
            if can_join:
                joined = old.copy()
                joined.insert(k, opt.initial_weight)
                yield f"join {k}", joined
            if old.nnz:
                yield f"move {k}", SparseVector([(k, opt.initial_weight)])

    def improve_node(self, node: int) -> float:
        """Apply the best improving move for ``node``.

        Returns:
            The loss change of the applied move, or 0.0 if none improved.
        """
        profile = self.objective.neighbor_profile(self.state, node)
        best_delta = -self.config.optimizer.tolerance
        best: tuple[str, SparseVector] | None = None
        for label, vec in self.candidates(node, profile):
            delta = self.objective.delta(self.state, node, vec, profile)
            if delta < best_delta:
                best_delta = delta
                best = (label, vec)

        if best is None:
            return 0.0

        label, vec = best
        old = self.state[node]
        self.objective.commit(node, old, vec)
        self.state.set(node, vec)
        if self.config.optimizer.verbosity >= 2:
            log.debug(
                "Node %d: %s, %s -> %s (delta %.6g)", node, label, old, vec, best_delta
            )
        return best_delta

    # ── Driver ───────────────────────────────────────────────────────

    def run_pass(self) -> int:
        """Visit every node once in random order; return the number of moves."""
        moves = 0
        for node in self._rng.permutation(self.state.size):
            if self.improve_node(int(node)) < 0:
                moves += 1
        return moves

    def run(self) -> OptimizationResult:
        """Initialise and iterate until convergence or the pass budget.

        Raises:
            ObjectiveError: If the loss becomes non-finite.
            ContractViolation: If ``check_invariants`` finds aggregate drift.
        """
        opt = self.config.optimizer
        self.initialize()
        result = OptimizationResult(state=self.state)
        result.loss_history.append(self.objective.loss(self.state))
        log.info(
            "Local search: %d nodes, %d cluster slots, initial loss %.6g",
            self.state.size,
            self.state.max_num_clus,
            result.loss_history[0],
        )

        for it in range(opt.num_iter):
            moves = self.run_pass()
            # resync incremental caches to bound floating point drift
            self.objective.reset(self.state)
            loss = self.objective.loss(self.state)

            result.num_passes = it + 1
            result.num_moves += moves
            result.loss_history.append(loss)

            if opt.check_invariants:
                errors = self.state.verify_aggregates()
                if errors:
                    raise ContractViolation(
                        f"Aggregate drift after pass {it}:\n"
                        + "\n".join(f"  - {e}" for e in errors)
                    )

            if opt.verbosity >= 1:
                log.info(
                    "Pass %d: loss %.6g, %d moves, %d non-empty clusters, nnz %d",
                    it,
                    loss,
                    moves,
                    len(self.state.non_empty_clusters()),
                    self.state.nnz,
                )

            if moves == 0:
                result.converged = True
                break

        log.info(
            "Local search finished after %d passes (%s): loss %.6g, %d moves",
            result.num_passes,
            "converged" if result.converged else "budget exhausted",
            result.final_loss,
            result.num_moves,
        )
        return result


def cluster_graph(
    graph: SparseMatrix,
    config: ClusteringConfig,
    objective: Objective | None = None,
) -> OptimizationResult:
    """Convenience wrapper: build an optimizer and run it."""
    return LocalSearchOptimizer(graph, config, objective).run()
