"""Objectives scored by the local search.

The default objective measures how well the memberships reconstruct the
symmetrised adjacency matrix S = (A + A^T) / 2:

    L(C) = 1/2 * sum_ij (S_ij - <c_i, c_j>)^2
         + weight_beta * sum_k cluster_weight[k]
         + sum_i prior(|c_i|)

Expanding the square gives

    1/2 * sum_ij S_ij^2  -  sum_ij S_ij <c_i, c_j>  +  1/2 * sum_kl G_kl^2

with G = C^T C the cluster Gram matrix. Keeping G up to date makes the
change of L under a single-node move cost O(degree * memberships + |c|^2)
instead of a full recomputation.
"""

import math
from abc import ABC, abstractmethod

import numpy as np
from scipy.special import gammaln

from nmf_cluster.clustering.state import ClusteringState
from nmf_cluster.config.params import ObjectiveConfig, SupportPrior
from nmf_cluster.sparse.matrix import SparseMatrix
from nmf_cluster.sparse.vector import SparseVector, dot, sum_of_squares


class ObjectiveError(Exception):
    """Raised when the objective becomes non-finite."""


def support_penalty(prior: SupportPrior, support_lambda: float, count: int) -> float:
    """Penalty for a node belonging to ``count`` clusters.

    ``ONE`` is uniform (always 0). ``POISSON`` is the negative log
    probability of ``count`` under Poisson(``support_lambda``).
    """
    if prior is SupportPrior.ONE:
        return 0.0
    if prior is SupportPrior.POISSON:
        return float(
            support_lambda - count * math.log(support_lambda) + gammaln(count + 1)
        )
    raise ValueError(f"Unknown support prior {prior!r}")


class Objective(ABC):
    """Interface between the local search and a loss function.

    The optimizer calls :meth:`reset` once the state is initialised,
    :meth:`delta` to score candidate memberships for a node, and
    :meth:`commit` right before it writes an accepted change into the
    state, so the objective can keep incremental caches in sync.
    """

    @abstractmethod
    def reset(self, state: ClusteringState) -> None:
        """Rebuild any cached quantities from ``state``."""

    @abstractmethod
    def loss(self, state: ClusteringState) -> float:
        """Full loss of ``state``, computed from scratch."""

    @abstractmethod
    def delta(
        self,
        state: ClusteringState,
        node: int,
        new: SparseVector,
        profile: np.ndarray | None = None,
    ) -> float:
        """Change in loss if ``node``'s memberships were replaced by ``new``."""

    @abstractmethod
    def commit(self, node: int, old: SparseVector, new: SparseVector) -> None:
        """Record that ``node`` moves from ``old`` to ``new``."""

    def neighbor_profile(self, state: ClusteringState, node: int) -> np.ndarray:
        """Dense per-cluster affinity of ``node`` to its neighbours' clusters."""
        return np.zeros(state.max_num_clus, dtype=np.float64)


class SquaredLossObjective(Objective):
    """Squared reconstruction error with weight and support penalties.

    Args:
        graph: Square adjacency matrix; symmetrised internally.
        config: Objective terms.
    """

    def __init__(self, graph: SparseMatrix, config: ObjectiveConfig) -> None:
        self.config = config
        self.graph = graph.symmetrized()
        self._self_loops = self.graph.diagonal()
        values = self.graph.values[: self.graph.nnz]
        self._half_sq_norm = 0.5 * float(np.dot(values, values))
        self._gram: np.ndarray | None = None

    @property
    def gram(self) -> np.ndarray:
        if self._gram is None:
            raise RuntimeError("Objective used before reset(state)")
        return self._gram

    def prior(self, count: int) -> float:
        return support_penalty(
            self.config.support_prior, self.config.support_lambda, count
        )

    def reset(self, state: ClusteringState) -> None:
        gram = np.zeros((state.max_num_clus, state.max_num_clus), dtype=np.float64)
        for vec in state:
            self._add_outer(gram, vec, 1.0)
        self._gram = gram

    @staticmethod
    def _add_outer(gram: np.ndarray, vec: SparseVector, sign: float) -> None:
        if not vec.nnz:
            return
        idx = np.fromiter(vec.clusters(), dtype=np.int64)
        w = np.fromiter(vec.weights(), dtype=np.float64)
        gram[np.ix_(idx, idx)] += sign * np.outer(w, w)

    def _quad(self, vec: SparseVector) -> float:
        """``vec^T G vec`` over the support of ``vec``."""
        if not vec.nnz:
            return 0.0
        idx = np.fromiter(vec.clusters(), dtype=np.int64)
        w = np.fromiter(vec.weights(), dtype=np.float64)
        return float(w @ self.gram[np.ix_(idx, idx)] @ w)

    @staticmethod
    def _dense_dot(dense: np.ndarray, vec: SparseVector) -> float:
        return sum(item.weight * dense[item.clus] for item in vec)

    def neighbor_profile(self, state: ClusteringState, node: int) -> np.ndarray:
        """``sum_{j != node} S_{node,j} c_j`` as a dense per-cluster array."""
        profile = np.zeros(state.max_num_clus, dtype=np.float64)
        for j, s in self.graph.column(node):
            if j != node:
                state.accumulate_memberships(profile, j, s)
        return profile

    def delta(
        self,
        state: ClusteringState,
        node: int,
        new: SparseVector,
        profile: np.ndarray | None = None,
    ) -> float:
        old = state[node]
        if profile is None:
            profile = self.neighbor_profile(state, node)

        ss_old = sum_of_squares(old)
        ss_new = sum_of_squares(new)
        overlap = dot(old, new)

        # -sum_ij S_ij <c_i, c_j>: off-diagonal pairs count twice
        cross = -2.0 * (
            self._dense_dot(profile, new) - self._dense_dot(profile, old)
        ) - self._self_loops[node] * (ss_new - ss_old)

        # 1/2 * sum_kl G_kl^2 with G -> G + new new^T - old old^T
        gram = (self._quad(new) - self._quad(old)) + 0.5 * (
            ss_new * ss_new - 2.0 * overlap * overlap + ss_old * ss_old
        )

        beta = self.config.weight_beta * (new.total_weight() - old.total_weight())
        prior = self.prior(new.nnz) - self.prior(old.nnz)
        return cross + gram + beta + prior

    def commit(self, node: int, old: SparseVector, new: SparseVector) -> None:
        self._add_outer(self.gram, old, -1.0)
        self._add_outer(self.gram, new, 1.0)

    def loss(self, state: ClusteringState) -> float:
        """Full loss, computed with scipy from the exported clustering.

        Raises:
            ObjectiveError: If the result is not finite.
        """
        membership = state.to_sparse_matrix().to_scipy()  # clusters x nodes
        s = self.graph.to_scipy()
        reconstruction = membership.T @ membership  # nodes x nodes
        gram = (membership @ membership.T).toarray()

        fit = (
            self._half_sq_norm
            - float(s.multiply(reconstruction).sum())
            + 0.5 * float(np.sum(gram * gram))
        )
        beta = self.config.weight_beta * float(state.cluster_weights.sum())
        prior = sum(self.prior(state.num_memberships(i)) for i in range(state.size))
        total = fit + beta + prior
        if not math.isfinite(total):
            raise ObjectiveError(
                f"Objective is not finite (fit={fit}, beta={beta}, prior={prior})"
            )
        return total
