"""Result schema validation and writing.

Uses a Python validation function (not jsonschema) to check required fields,
types, and per-cluster array consistency before writing result.json files.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import numpy as np
import scipy.sparse

from nmf_cluster.config.hashing import full_config_hash, objective_config_hash
from nmf_cluster.config.params import ClusteringConfig
from nmf_cluster.config.serialization import config_to_dict
from nmf_cluster.optimizer.local_search import OptimizationResult
from nmf_cluster.results.run_id import generate_run_id

log = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"

REQUIRED_TOP_FIELDS = {
    "schema_version",
    "run_id",
    "timestamp",
    "description",
    "tags",
    "config",
    "metrics",
    "clusters",
}

REQUIRED_SCALARS = {
    "initial_loss",
    "final_loss",
    "num_passes",
    "num_moves",
    "converged",
    "num_nodes",
    "num_clusters",
    "nnz",
}


def validate_result(result: dict[str, Any]) -> list[str]:
    """Validate a result dict against the project schema.

    Returns a list of error strings. An empty list means the result is valid.

    Checks:
    - All required top-level fields are present
    - schema_version is a string, tags a list, config a dict
    - timestamp parses as ISO 8601
    - metrics.scalars holds every required scalar
    - clusters.size and clusters.weight have num_clusters entries
    """
    errors: list[str] = []

    missing = REQUIRED_TOP_FIELDS - set(result.keys())
    if missing:
        errors.append(f"Missing required top-level fields: {sorted(missing)}")

    if "schema_version" in result and not isinstance(result["schema_version"], str):
        errors.append("schema_version must be a string")

    if "tags" in result and not isinstance(result["tags"], list):
        errors.append("tags must be a list")

    if "config" in result and not isinstance(result["config"], dict):
        errors.append("config must be a dict")

    if "timestamp" in result:
        ts = result["timestamp"]
        if not isinstance(ts, str):
            errors.append("timestamp must be a string")
        else:
            try:
                datetime.fromisoformat(ts)
            except ValueError:
                errors.append("timestamp must be in ISO 8601 format")

    scalars: dict[str, Any] = {}
    if "metrics" in result:
        metrics = result["metrics"]
        if not isinstance(metrics, dict):
            errors.append("metrics must be a dict")
        elif not isinstance(metrics.get("scalars"), dict):
            errors.append("metrics.scalars is required")
        else:
            scalars = metrics["scalars"]
            missing_scalars = REQUIRED_SCALARS - set(scalars.keys())
            if missing_scalars:
                errors.append(
                    f"metrics.scalars missing fields: {sorted(missing_scalars)}"
                )

    if "clusters" in result:
        clusters = result["clusters"]
        if not isinstance(clusters, dict):
            errors.append("clusters must be a dict")
        else:
            num_clusters = scalars.get("num_clusters")
            for name in ("size", "weight"):
                values = clusters.get(name)
                if not isinstance(values, list):
                    errors.append(f"clusters.{name} must be a list")
                elif num_clusters is not None and len(values) != num_clusters:
                    errors.append(
                        f"clusters.{name} has {len(values)} entries, "
                        f"expected num_clusters = {num_clusters}"
                    )

    return errors


def build_result(
    result: OptimizationResult,
    config: ClusteringConfig,
    graph_name: str,
    run_id: str | None = None,
) -> dict[str, Any]:
    """Assemble the result.json payload for a finished run.

    Per-cluster aggregates are listed in the same compressed order as the
    rows of the exported clustering matrix.
    """
    state = result.state
    clus_id, num_clus, _ = state.compressed_cluster_ids()
    used = np.flatnonzero(clus_id >= 0)
    order = used[np.argsort(clus_id[used])]

    return {
        "schema_version": SCHEMA_VERSION,
        "run_id": run_id or generate_run_id(config, graph_name),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "description": config.description,
        "tags": list(config.tags),
        "config": config_to_dict(config),
        "metrics": {
            "scalars": {
                "initial_loss": result.loss_history[0],
                "final_loss": result.final_loss,
                "num_passes": result.num_passes,
                "num_moves": result.num_moves,
                "converged": result.converged,
                "num_nodes": state.size,
                "num_clusters": num_clus,
                "nnz": state.nnz,
            },
            "curves": {"loss": list(result.loss_history)},
        },
        "clusters": {
            "original_id": order.tolist(),
            "size": state.cluster_sizes[order].tolist(),
            "weight": state.cluster_weights[order].tolist(),
        },
        "metadata": {
            "graph": graph_name,
            "config_hash": full_config_hash(config),
            "objective_config_hash": objective_config_hash(config),
        },
    }


def write_result(
    result: OptimizationResult,
    config: ClusteringConfig,
    graph_name: str,
    results_dir: str | Path = "results",
) -> Path:
    """Write result.json, clustering.npz and clustering.txt for a run.

    Creates a directory at {results_dir}/{run_id}/.

    Args:
        result: Finished optimization result.
        config: The run configuration.
        graph_name: Fixture name or graph path, recorded in metadata.
        results_dir: Base directory for result output.

    Returns:
        Path to the run directory.

    Raises:
        ValueError: If the assembled result fails validation.
    """
    payload = build_result(result, config, graph_name)

    errors = validate_result(payload)
    if errors:
        raise ValueError(
            "Result validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )

    out_dir = Path(results_dir) / payload["run_id"]
    out_dir.mkdir(parents=True, exist_ok=True)

    with open(out_dir / "result.json", "w") as f:
        json.dump(payload, f, indent=2)

    matrix = result.state.to_sparse_matrix()
    scipy.sparse.save_npz(str(out_dir / "clustering.npz"), matrix.to_scipy())
    (out_dir / "clustering.txt").write_text(matrix.format())

    log.info("Results written to %s", out_dir)
    return out_dir


def load_result(result_path: str | Path) -> dict[str, Any]:
    """Load and validate a result.json file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the loaded result fails validation.
    """
    path = Path(result_path)
    with open(path) as f:
        result = json.load(f)

    errors = validate_result(result)
    if errors:
        raise ValueError(
            f"Result validation failed for {path}:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    return result
