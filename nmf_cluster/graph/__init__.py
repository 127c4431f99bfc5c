"""Graph sources: named fixtures and file loaders for adjacency matrices."""

from nmf_cluster.graph.fixtures import FIXTURES, fixture_graph
from nmf_cluster.graph.loading import (
    GraphLoadError,
    load_graph,
    save_graph,
    validate_adjacency,
)

__all__ = [
    "FIXTURES",
    "GraphLoadError",
    "fixture_graph",
    "load_graph",
    "save_graph",
    "validate_adjacency",
]
