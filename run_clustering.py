#!/usr/bin/env python3
"""Entry point for clustering a graph with the local search optimizer.

Chains the stages into a single command:
graph loading -> local search -> listing -> result writing.

Usage:
    python run_clustering.py --graph ones3
    python run_clustering.py --graph edges.txt --undirected --config config.json
    python run_clustering.py --graph graph.npz --output results --verbose
    python run_clustering.py --graph two_triangles --dry-run
"""

import argparse
import logging
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from nmf_cluster.config import (
    DEFAULT_CONFIG,
    ClusteringConfig,
    config_from_json,
    full_config_hash,
)
from nmf_cluster.graph import GraphLoadError, load_graph
from nmf_cluster.optimizer import ObjectiveError, cluster_graph
from nmf_cluster.results import generate_run_id, write_result
from nmf_cluster.sparse import ContractViolation

log = logging.getLogger(__name__)


@contextmanager
def stage_timer(name: str) -> Generator[None, None, None]:
    """Context manager that logs stage start and elapsed time."""
    log.info("Starting: %s", name)
    t0 = time.monotonic()
    yield
    log.info("Completed: %s in %.2fs", name, time.monotonic() - t0)


def run_pipeline(
    graph_source: str,
    config: ClusteringConfig,
    output_dir: str | None = None,
    undirected: bool = False,
) -> int:
    """Load the graph, run the local search and report the clustering.

    Args:
        graph_source: Fixture name or graph file path.
        config: Run configuration.
        output_dir: Base directory for results; nothing is written if None.
        undirected: Treat edge list files as undirected.

    Returns:
        Process exit status.
    """
    with stage_timer("Graph Loading"):
        graph = load_graph(graph_source, undirected=undirected)

    with stage_timer("Local Search"):
        result = cluster_graph(graph, config)

    print(result.state.to_sparse_matrix(), end="")

    if output_dir is not None:
        with stage_timer("Result Writing"):
            run_dir = write_result(result, config, graph_source, output_dir)
        print(f"Results: {run_dir}", file=sys.stderr)

    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Overlapping graph clustering by local search"
    )
    parser.add_argument(
        "--graph",
        type=str,
        required=True,
        help="Fixture name (ones3, identity3, triangle3, two_triangles) "
        "or path to a .npz, .mtx or edge list file",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to clustering config JSON file (default: built-in defaults)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Directory to write result.json and clustering files into",
    )
    parser.add_argument(
        "--undirected",
        action="store_true",
        help="Add every edge list entry in both directions",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the run plan without clustering",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable DEBUG-level logging",
    )
    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = DEFAULT_CONFIG
    if args.config is not None:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: config file not found: {config_path}", file=sys.stderr)
            return 1
        try:
            config = config_from_json(config_path.read_text())
        except Exception as e:
            print(f"Error: invalid config {config_path}: {e}", file=sys.stderr)
            return 1

    if args.dry_run:
        obj = config.objective
        opt = config.optimizer
        print(f"Run ID:      {generate_run_id(config, args.graph)}")
        print(f"Config hash: {full_config_hash(config)}")
        print(f"Graph:       {args.graph}")
        print(
            f"Objective:   weight_beta={obj.weight_beta}, "
            f"support_prior={obj.support_prior.value}, "
            f"support_lambda={obj.support_lambda}"
        )
        print(
            f"Optimizer:   num_iter={opt.num_iter}, init={opt.init.value}, "
            f"max_num_clus={opt.max_num_clus}, "
            f"max_cluster_per_node={opt.max_cluster_per_node}"
        )
        print(f"Seed:        {config.seed}")
        print("\n[dry-run] Config loaded successfully. Exiting.")
        return 0

    try:
        return run_pipeline(args.graph, config, args.output, args.undirected)
    except (GraphLoadError, ObjectiveError, ValueError) as e:
        log.error("Clustering failed: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ContractViolation:
        log.exception("Internal contract violation")
        return 1


if __name__ == "__main__":
    sys.exit(main())
