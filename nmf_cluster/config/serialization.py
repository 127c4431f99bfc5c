"""JSON serialization and deserialization for clustering configs."""

import json
from dataclasses import asdict
from enum import Enum
from typing import Any

from dacite import from_dict, Config as DaciteConfig

from nmf_cluster.config.params import ClusteringConfig

# Tuples arrive as JSON arrays and enums as their string values.
_DACITE_CONFIG = DaciteConfig(
    cast=[tuple, Enum],
    check_types=True,
    strict=True,
)


def config_to_dict(config: ClusteringConfig) -> dict[str, Any]:
    """Convert a ClusteringConfig to a plain, JSON-ready dictionary."""
    d = asdict(config)
    d["objective"]["support_prior"] = config.objective.support_prior.value
    d["optimizer"]["init"] = config.optimizer.init.value
    return d


def config_from_dict(d: dict[str, Any]) -> ClusteringConfig:
    """Reconstruct a ClusteringConfig from a plain dictionary.

    Uses dacite with strict=True to reject unknown keys, so a typo in a
    config file fails loudly instead of silently falling back to a default.
    """
    return from_dict(data_class=ClusteringConfig, data=d, config=_DACITE_CONFIG)


def config_to_json(config: ClusteringConfig) -> str:
    """Serialize a ClusteringConfig to a JSON string.

    Uses sorted keys and 2-space indent for human readability and diffability.
    """
    return json.dumps(config_to_dict(config), indent=2, sort_keys=True)


def config_from_json(json_str: str) -> ClusteringConfig:
    """Deserialize a JSON string to a ClusteringConfig."""
    return config_from_dict(json.loads(json_str))
