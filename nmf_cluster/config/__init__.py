"""Run configuration: frozen dataclasses, hashing and JSON serialization."""

from nmf_cluster.config.params import (
    ClusteringConfig,
    InitStrategy,
    ObjectiveConfig,
    OptimizerConfig,
    SupportPrior,
)
from nmf_cluster.config.defaults import DEFAULT_CONFIG, POISSON_CONFIG
from nmf_cluster.config.hashing import (
    config_hash,
    full_config_hash,
    objective_config_hash,
)
from nmf_cluster.config.serialization import (
    config_from_dict,
    config_from_json,
    config_to_dict,
    config_to_json,
)

__all__ = [
    "ClusteringConfig",
    "InitStrategy",
    "ObjectiveConfig",
    "OptimizerConfig",
    "SupportPrior",
    "DEFAULT_CONFIG",
    "POISSON_CONFIG",
    "config_hash",
    "full_config_hash",
    "objective_config_hash",
    "config_from_dict",
    "config_from_json",
    "config_to_dict",
    "config_to_json",
]
