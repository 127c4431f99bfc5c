"""Clustering state: per-node memberships plus per-cluster size and weight."""

from nmf_cluster.clustering.state import ClusteringState, MembershipLimitError

__all__ = [
    "ClusteringState",
    "MembershipLimitError",
]
