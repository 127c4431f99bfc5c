"""Soft clustering state with incrementally maintained cluster aggregates.

Each node owns a sorted SparseVector of its memberships. Two dense arrays
indexed by cluster id summarise them:

    cluster_size[k]   == number of nodes with a membership in k
    cluster_weight[k] == sum of membership weights in k

Every mutation updates the aggregates together with the node's vector, so
the summary never drifts from the memberships it describes.
"""

import logging
import math
from typing import Iterator

import numpy as np

from nmf_cluster.sparse.errors import ContractViolation
from nmf_cluster.sparse.matrix import SparseMatrix
from nmf_cluster.sparse.vector import SparseVector, accumulate_into

log = logging.getLogger(__name__)


class MembershipLimitError(ValueError):
    """Raised when a node would exceed the per-node cluster cap."""


class ClusteringState:
    """Memberships of ``num_node`` nodes over ``max_num_clus`` cluster slots.

    Args:
        num_node: Number of nodes; node ids are ``[0, num_node)``.
        max_num_clus: Number of cluster slots; ids are ``[0, max_num_clus)``.
        max_clus_per_node: Optional cap on memberships per node.

    Raises:
        ValueError: If the bounds are negative or not integers.
    """

    def __init__(
        self,
        num_node: int,
        max_num_clus: int,
        max_clus_per_node: int | None = None,
    ) -> None:
        for name, value in (("num_node", num_node), ("max_num_clus", max_num_clus)):
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")
        if max_clus_per_node is not None:
            if isinstance(max_clus_per_node, bool) or not isinstance(
                max_clus_per_node, (int, np.integer)
            ):
                raise ValueError(
                    f"max_clus_per_node must be an integer, got {max_clus_per_node!r}"
                )
            if max_clus_per_node < 1:
                raise ValueError(
                    f"max_clus_per_node must be >= 1 when given, got {max_clus_per_node}"
                )
            max_clus_per_node = int(max_clus_per_node)

        self._clustering = [SparseVector() for _ in range(int(num_node))]
        self._cluster_size = np.zeros(int(max_num_clus), dtype=np.int64)
        self._cluster_weight = np.zeros(int(max_num_clus), dtype=np.float64)
        self._max_clus_per_node = max_clus_per_node
        self._nnz = 0

    # ── Read-only queries ────────────────────────────────────────────

    @property
    def max_num_clus(self) -> int:
        """Upper bound on cluster ids."""
        return int(self._cluster_size.shape[0])

    @property
    def size(self) -> int:
        """Number of nodes."""
        return len(self._clustering)

    @property
    def max_clus_per_node(self) -> int | None:
        return self._max_clus_per_node

    def __len__(self) -> int:
        return len(self._clustering)

    def clus_size(self, k: int) -> int:
        self._check_clus(k)
        return int(self._cluster_size[k])

    def clus_weight(self, k: int) -> float:
        self._check_clus(k)
        return float(self._cluster_weight[k])

    @property
    def cluster_sizes(self) -> np.ndarray:
        """Copy of the per-cluster size array."""
        return self._cluster_size.copy()

    @property
    def cluster_weights(self) -> np.ndarray:
        """Copy of the per-cluster weight array."""
        return self._cluster_weight.copy()

    @property
    def nnz(self) -> int:
        """Total number of stored memberships."""
        return self._nnz

    @property
    def total_size(self) -> int:
        return self.size * self.max_num_clus

    @property
    def number_of_zeros(self) -> int:
        return self.total_size - self._nnz

    def __getitem__(self, node: int) -> SparseVector:
        """Copy of the membership vector of ``node``."""
        self._check_node(node)
        return self._clustering[node].copy()

    def __iter__(self) -> Iterator[SparseVector]:
        """Copies of every node's membership vector, in node order."""
        for vec in self._clustering:
            yield vec.copy()

    def accumulate_memberships(
        self, dense: np.ndarray, node: int, scale: float = 1.0
    ) -> None:
        """Add ``scale`` times the memberships of ``node`` into ``dense``.

        Reads the stored vector in place, without the copy ``state[node]``
        makes.
        """
        self._check_node(node)
        accumulate_into(dense, self._clustering[node], scale)

    def num_memberships(self, node: int) -> int:
        self._check_node(node)
        return self._clustering[node].nnz

    def non_empty_clusters(self) -> np.ndarray:
        """Cluster ids with at least one member, ascending."""
        return np.flatnonzero(self._cluster_size > 0)

    def empty_cluster(self) -> int | None:
        """Lowest cluster id without members, or None if all are in use."""
        empty = np.flatnonzero(self._cluster_size == 0)
        return int(empty[0]) if empty.size else None

    # ── Contract checks ──────────────────────────────────────────────

    def _check_node(self, node: int) -> None:
        if not 0 <= node < len(self._clustering):
            raise ContractViolation(
                f"Node {node} out of range [0, {len(self._clustering)})"
            )

    def _check_clus(self, k: int) -> None:
        if not 0 <= k < self._cluster_size.shape[0]:
            raise ContractViolation(
                f"Cluster {k} out of range [0, {self._cluster_size.shape[0]})"
            )

    def _check_weight(self, node: int, k: int, weight: float) -> None:
        if not weight > 0.0 or math.isinf(weight):
            raise ContractViolation(
                f"Membership weight of node {node} in cluster {k} must be "
                f"finite and positive, got {weight}"
            )

    def _check_cap(self, node: int, count: int) -> None:
        cap = self._max_clus_per_node
        if cap is not None and count > cap:
            raise MembershipLimitError(
                f"Node {node} would belong to {count} clusters, "
                f"more than the limit of {cap}"
            )

    # ── Mutation ─────────────────────────────────────────────────────

    def add(self, node: int, clus: int, weight: float) -> None:
        """Make ``node`` a member of ``clus`` with the given weight.

        Raises:
            ContractViolation: If ``node`` is already in ``clus`` or an
                argument is out of range.
            MembershipLimitError: If the per-node cap would be exceeded.
        """
        self._check_node(node)
        self._check_clus(clus)
        self._check_weight(node, clus, weight)
        vec = self._clustering[node]
        if vec.contains(clus):
            raise ContractViolation(f"Node {node} is already in cluster {clus}")
        self._check_cap(node, vec.nnz + 1)
        vec.insert(clus, weight)
        self._cluster_size[clus] += 1
        self._cluster_weight[clus] += weight
        self._nnz += 1

    def remove(self, node: int, clus: int) -> float:
        """Drop the membership of ``node`` in ``clus``; return its weight.

        Raises:
            ContractViolation: If ``node`` is not in ``clus``.
        """
        self._check_node(node)
        self._check_clus(clus)
        weight = self._clustering[node].remove(clus)
        self._drop_from_cluster(clus, weight)
        self._nnz -= 1
        return weight

    def _drop_from_cluster(self, clus: int, weight: float) -> None:
        self._cluster_size[clus] -= 1
        if self._cluster_size[clus] == 0:
            # an empty cluster weighs exactly 0, whatever rounding left behind
            self._cluster_weight[clus] = 0.0
        else:
            self._cluster_weight[clus] -= weight

    def clear_node(self, node: int) -> None:
        self._check_node(node)
        vec = self._clustering[node]
        for item in vec:
            self._drop_from_cluster(item.clus, item.weight)
        self._nnz -= vec.nnz
        vec.clear()

    def set(self, node: int, memberships: SparseVector) -> None:
        """Replace all memberships of ``node`` with a copy of ``memberships``.

        Equivalent to ``clear_node`` followed by adding every entry, so
        calling it twice with the same vector is the same as calling it once.
        The new vector is checked in full before anything is changed.
        """
        self._check_node(node)
        if not memberships.is_sorted:
            raise ContractViolation(
                f"set() needs a sorted SparseVector, got {memberships}"
            )
        for item in memberships:
            self._check_clus(item.clus)
            self._check_weight(node, item.clus, item.weight)
        self._check_cap(node, memberships.nnz)

        self.clear_node(node)
        for item in memberships:
            self._cluster_size[item.clus] += 1
            self._cluster_weight[item.clus] += item.weight
        self._clustering[node] = memberships.copy()
        self._nnz += memberships.nnz

    def clear(self) -> None:
        self._cluster_size.fill(0)
        self._cluster_weight.fill(0.0)
        for vec in self._clustering:
            vec.clear()
        self._nnz = 0

    # ── Consistency ──────────────────────────────────────────────────

    def verify_aggregates(self, atol: float = 1e-9) -> list[str]:
        """Recompute the aggregates from scratch and compare.

        Costs O(num_node * memberships + max_num_clus); meant for tests
        and debug runs.

        Returns:
            List of error strings (empty = aggregates match memberships).
        """
        errors: list[str] = []
        sizes = np.zeros_like(self._cluster_size)
        weights = np.zeros_like(self._cluster_weight)
        nnz = 0
        for vec in self._clustering:
            for item in vec:
                sizes[item.clus] += 1
                weights[item.clus] += item.weight
            nnz += vec.nnz

        for k in np.flatnonzero(sizes != self._cluster_size):
            errors.append(
                f"cluster_size[{k}] = {self._cluster_size[k]}, recomputed {sizes[k]}"
            )
        for k in np.flatnonzero(~np.isclose(weights, self._cluster_weight, atol=atol)):
            errors.append(
                f"cluster_weight[{k}] = {self._cluster_weight[k]}, "
                f"recomputed {weights[k]}"
            )
        if nnz != self._nnz:
            errors.append(f"nnz = {self._nnz}, recomputed {nnz}")
        return errors

    # ── Export ───────────────────────────────────────────────────────

    def compressed_cluster_ids(self) -> tuple[np.ndarray, int, int]:
        """Number the non-empty clusters in first-encounter order.

        Scans nodes in order and each node's memberships in cluster order;
        the first time a cluster is seen it gets the next compressed id.

        Returns:
            Tuple of (mapping array with -1 for unused clusters, number of
            non-empty clusters, total number of memberships).
        """
        clus_id = np.full(self.max_num_clus, -1, dtype=np.int64)
        num_clus = 0
        num_inclus = 0
        for vec in self._clustering:
            for item in vec:
                if clus_id[item.clus] == -1:
                    clus_id[item.clus] = num_clus
                    num_clus += 1
                num_inclus += 1
        return clus_id, num_clus, num_inclus

    def to_sparse_matrix(self) -> SparseMatrix:
        """Export as a (non-empty clusters x nodes) CSC matrix.

        Rows are the non-empty clusters renumbered contiguously in
        first-encounter order; columns are nodes. The row count is only
        known after the first scan, so storage is allocated between the
        discovery pass and the fill pass.
        """
        clus_id, num_clus, num_inclus = self.compressed_cluster_ids()

        out = SparseMatrix(num_clus, self.size, num_inclus)
        offsets = out.col_offsets
        rows = out.row_indices
        values = out.values
        k = 0
        offsets[0] = k
        for j, vec in enumerate(self._clustering):
            for item in vec:
                rows[k] = clus_id[item.clus]
                values[k] = item.weight
                k += 1
            offsets[j + 1] = k

        out.validate()
        log.debug(
            "Exported clustering: %d non-empty clusters, %d nodes, %d memberships",
            num_clus,
            self.size,
            num_inclus,
        )
        return out

    def format(self) -> str:
        """One ``node: [clus:weight, ...]`` line per node."""
        return "".join(f"{i}: {vec}\n" for i, vec in enumerate(self._clustering))

    def __repr__(self) -> str:
        return (
            f"ClusteringState(num_node={self.size}, "
            f"max_num_clus={self.max_num_clus}, nnz={self._nnz})"
        )
