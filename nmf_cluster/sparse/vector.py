"""Sparse membership vectors: (cluster, weight) pairs kept sorted by cluster id.

A node's memberships are few compared to the number of cluster slots, and
the optimizer reads them far more often than it restructures them. Keeping
the pairs sorted makes lookups O(log n) and lets dot products run as a
linear merge-join.
"""

import math
from bisect import bisect_left
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

import numpy as np

from nmf_cluster.sparse.errors import ContractViolation


@dataclass(frozen=True, slots=True)
class SparseItem:
    """A single (cluster id, membership weight) entry."""

    clus: int
    weight: float


def _check_entry(clus: int, weight: float) -> None:
    if clus < 0:
        raise ContractViolation(f"Cluster id must be non-negative, got {clus}")
    if not weight > 0.0 or math.isinf(weight):
        raise ContractViolation(
            f"Weight for cluster {clus} must be finite and positive, "
            f"got {weight}"
        )


class SparseVector:
    """Sequence of :class:`SparseItem` strictly increasing by cluster id.

    ``push_back`` may break the ordering; ``sort`` restores it. Every
    query that relies on the ordering (``lookup``, ``contains``,
    ``insert``, ``remove``, ``dot``, ``sum_of_squares``) checks a
    sortedness flag first and raises :class:`ContractViolation` if the
    vector was left unsorted.
    """

    __slots__ = ("_clus", "_weight", "_sorted")

    def __init__(self, items: Iterable[tuple[int, float]] | None = None) -> None:
        self._clus: list[int] = []
        self._weight: list[float] = []
        self._sorted = True
        if items is not None:
            for clus, weight in items:
                self.push_back(clus, weight)
            self.sort()

    @classmethod
    def from_items(cls, items: Iterable[SparseItem]) -> "SparseVector":
        """Build a sorted vector from SparseItems in any order."""
        return cls((item.clus, item.weight) for item in items)

    @classmethod
    def from_dense(cls, dense: Sequence[float] | np.ndarray) -> "SparseVector":
        """Build a vector from a dense per-cluster array, dropping exact zeros."""
        arr = np.asarray(dense, dtype=np.float64)
        vec = cls()
        for k in np.flatnonzero(arr):
            vec.push_back(int(k), float(arr[k]))
        return vec

    # ── Inspection ───────────────────────────────────────────────────

    @property
    def nnz(self) -> int:
        return len(self._clus)

    @property
    def is_sorted(self) -> bool:
        return self._sorted

    def __len__(self) -> int:
        return len(self._clus)

    def __iter__(self) -> Iterator[SparseItem]:
        for clus, weight in zip(self._clus, self._weight):
            yield SparseItem(clus, weight)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SparseVector):
            return NotImplemented
        return self._clus == other._clus and self._weight == other._weight

    def __repr__(self) -> str:
        return f"SparseVector({str(self)})"

    def __str__(self) -> str:
        body = ", ".join(
            f"{clus}:{weight:g}" for clus, weight in zip(self._clus, self._weight)
        )
        return f"[{body}]"

    def clusters(self) -> tuple[int, ...]:
        """Read-only view of the cluster ids in storage order."""
        return tuple(self._clus)

    def weights(self) -> tuple[float, ...]:
        """Read-only view of the weights in storage order."""
        return tuple(self._weight)

    def total_weight(self) -> float:
        return math.fsum(self._weight)

    def copy(self) -> "SparseVector":
        out = SparseVector()
        out._clus = list(self._clus)
        out._weight = list(self._weight)
        out._sorted = self._sorted
        return out

    # ── Sorted queries ───────────────────────────────────────────────

    def _require_sorted(self, operation: str) -> None:
        if not self._sorted:
            raise ContractViolation(
                f"{operation} on an unsorted SparseVector {self}; call sort() first"
            )

    def _find(self, clus: int) -> int:
        return bisect_left(self._clus, clus)

    def lookup(self, clus: int) -> float:
        """Weight stored for ``clus``, or 0.0 if absent."""
        self._require_sorted("lookup")
        i = self._find(clus)
        if i < len(self._clus) and self._clus[i] == clus:
            return self._weight[i]
        return 0.0

    def contains(self, clus: int) -> bool:
        self._require_sorted("contains")
        i = self._find(clus)
        return i < len(self._clus) and self._clus[i] == clus

    __contains__ = contains

    # ── Mutation ─────────────────────────────────────────────────────

    def insert(self, clus: int, weight: float) -> None:
        """Insert a new entry keeping sort order.

        Raises:
            ContractViolation: If ``clus`` is already present, or the
                vector is unsorted, or the weight is invalid.
        """
        self._require_sorted("insert")
        _check_entry(clus, weight)
        i = self._find(clus)
        if i < len(self._clus) and self._clus[i] == clus:
            raise ContractViolation(
                f"Cluster {clus} already present in {self}; remove it first"
            )
        self._clus.insert(i, clus)
        self._weight.insert(i, weight)

    def remove(self, clus: int) -> float:
        """Remove the entry for ``clus`` and return its weight.

        Raises:
            ContractViolation: If ``clus`` is absent or the vector is unsorted.
        """
        self._require_sorted("remove")
        i = self._find(clus)
        if i == len(self._clus) or self._clus[i] != clus:
            raise ContractViolation(f"Cluster {clus} not present in {self}")
        del self._clus[i]
        return self._weight.pop(i)

    def push_back(self, clus: int, weight: float) -> None:
        """Append without regard to order; may leave the vector unsorted."""
        _check_entry(clus, weight)
        if self._clus and clus <= self._clus[-1]:
            self._sorted = False
        self._clus.append(clus)
        self._weight.append(weight)

    def pop_back(self) -> SparseItem:
        if not self._clus:
            raise ContractViolation("pop_back on an empty SparseVector")
        item = SparseItem(self._clus.pop(), self._weight.pop())
        if not self._sorted:
            c = self._clus
            self._sorted = all(a < b for a, b in zip(c, c[1:]))
        return item

    def back(self) -> SparseItem:
        if not self._clus:
            raise ContractViolation("back on an empty SparseVector")
        return SparseItem(self._clus[-1], self._weight[-1])

    def clear(self) -> None:
        self._clus.clear()
        self._weight.clear()
        self._sorted = True

    def sort(self) -> None:
        """Re-sort by cluster id after unordered appends.

        Raises:
            ContractViolation: If two entries share a cluster id.
        """
        if self._sorted:
            return
        order = sorted(range(len(self._clus)), key=self._clus.__getitem__)
        self._clus = [self._clus[i] for i in order]
        self._weight = [self._weight[i] for i in order]
        for prev, cur in zip(self._clus, self._clus[1:]):
            if prev == cur:
                raise ContractViolation(f"Duplicate cluster id {cur} in {self}")
        self._sorted = True


def dot(x: SparseVector, y: SparseVector) -> float:
    """Inner product of two sorted vectors by merge-join, O(|x| + |y|)."""
    if not (x.is_sorted and y.is_sorted):
        raise ContractViolation("dot requires both SparseVectors to be sorted")
    xc, xw = x.clusters(), x.weights()
    yc, yw = y.clusters(), y.weights()
    i = j = 0
    total = 0.0
    while i < len(xc) and j < len(yc):
        if xc[i] < yc[j]:
            i += 1
        elif xc[i] > yc[j]:
            j += 1
        else:
            total += xw[i] * yw[j]
            i += 1
            j += 1
    return total


def sum_of_squares(x: SparseVector) -> float:
    if not x.is_sorted:
        raise ContractViolation("sum_of_squares requires a sorted SparseVector")
    return sum(w * w for w in x.weights())


def accumulate_into(
    dense: np.ndarray | list[float], x: SparseVector, scale: float = 1.0
) -> None:
    """Add ``scale * weight`` of every entry into ``dense[cluster_id]``.

    Projects a sparse membership vector onto a dense per-cluster
    accumulator in O(|x|). Order of entries does not matter.
    """
    for item in x:
        dense[item.clus] += scale * item.weight
