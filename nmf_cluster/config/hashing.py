"""Deterministic config hashing using SHA-256 over sorted JSON."""

import hashlib
import json
from dataclasses import asdict
from typing import Any

from nmf_cluster.config.params import ClusteringConfig


def _remove_nested(d: dict[str, Any], field_path: str) -> None:
    """Remove a dotted-path key from a nested dict.

    Example: _remove_nested(d, "optimizer.verbosity") removes
    d["optimizer"]["verbosity"]. Single-level paths like "seed" remove d["seed"].
    """
    parts = field_path.split(".")
    current = d
    for part in parts[:-1]:
        if part not in current or not isinstance(current[part], dict):
            return
        current = current[part]
    current.pop(parts[-1], None)


def config_hash(config: Any, exclude_fields: list[str] | None = None) -> str:
    """Deterministic SHA-256 hash of a config object.

    Args:
        config: Any dataclass instance (or sub-config).
        exclude_fields: Optional list of dotted field paths to exclude.

    Returns:
        First 16 hex characters of the SHA-256 hash.
    """
    d = asdict(config)
    if exclude_fields:
        for field_path in exclude_fields:
            _remove_nested(d, field_path)
    serialized = json.dumps(
        d,
        sort_keys=True,
        ensure_ascii=True,
        separators=(",", ":"),
        indent=None,
    )
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()[:16]


def objective_config_hash(config: ClusteringConfig) -> str:
    """Hash of the objective terms only.

    Runs that differ in seed, search budget or labels but minimise the same
    objective share this hash, so their final losses are comparable.
    """
    return config_hash(config.objective)


def full_config_hash(config: ClusteringConfig) -> str:
    """Hash for run identity, ignoring logging verbosity and free-text labels."""
    return config_hash(
        config, exclude_fields=["optimizer.verbosity", "description", "tags"]
    )
