"""Objectives and the local search that optimises them."""

from nmf_cluster.optimizer.local_search import (
    LocalSearchOptimizer,
    OptimizationResult,
    cluster_graph,
)
from nmf_cluster.optimizer.objective import (
    Objective,
    ObjectiveError,
    SquaredLossObjective,
    support_penalty,
)

__all__ = [
    "LocalSearchOptimizer",
    "Objective",
    "ObjectiveError",
    "OptimizationResult",
    "SquaredLossObjective",
    "cluster_graph",
    "support_penalty",
]
