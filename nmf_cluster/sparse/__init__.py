"""Sparse matrix and sparse vector algebra used on the optimizer's hot path."""

from nmf_cluster.sparse.errors import ContractViolation
from nmf_cluster.sparse.matrix import SparseMatrix
from nmf_cluster.sparse.vector import (
    SparseItem,
    SparseVector,
    accumulate_into,
    dot,
    sum_of_squares,
)

__all__ = [
    "ContractViolation",
    "SparseItem",
    "SparseMatrix",
    "SparseVector",
    "accumulate_into",
    "dot",
    "sum_of_squares",
]
