"""Run ID generation with scannable parameter slug format."""

from datetime import datetime, timezone

from nmf_cluster.config.params import ClusteringConfig


def generate_run_id(config: ClusteringConfig, graph_name: str) -> str:
    """Generate a scannable run ID from the graph name and config parameters.

    Format: {graph}_{prior}_b{weight_beta}_s{seed}_{YYYYMMDD}_{HHMMSS}
    Example: two_triangles_poisson_b0.01_s1234567_20261019_143012

    The graph name is reduced to its file stem with anything outside
    ``[A-Za-z0-9_-]`` replaced by ``-``.
    """
    stem = graph_name.rsplit("/", 1)[-1].split(".", 1)[0] or "graph"
    slug = "".join(c if c.isalnum() or c in "_-" else "-" for c in stem)
    ts = datetime.now(timezone.utc)
    return (
        f"{slug}"
        f"_{config.objective.support_prior.value}"
        f"_b{config.objective.weight_beta:g}"
        f"_s{config.seed}"
        f"_{ts.strftime('%Y%m%d_%H%M%S')}"
    )
