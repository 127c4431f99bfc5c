"""Overlapping graph clustering by local search on an NMF-style objective."""

from nmf_cluster.clustering import ClusteringState, MembershipLimitError
from nmf_cluster.sparse import (
    ContractViolation,
    SparseItem,
    SparseMatrix,
    SparseVector,
    accumulate_into,
    dot,
    sum_of_squares,
)

__all__ = [
    "ClusteringState",
    "ContractViolation",
    "MembershipLimitError",
    "SparseItem",
    "SparseMatrix",
    "SparseVector",
    "accumulate_into",
    "dot",
    "sum_of_squares",
]

__version__ = "0.1.0"
