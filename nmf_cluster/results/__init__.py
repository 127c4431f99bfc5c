"""Result schema validation, writing, and run ID generation."""

from nmf_cluster.results.schema import (
    build_result,
    load_result,
    validate_result,
    write_result,
)
from nmf_cluster.results.run_id import generate_run_id

__all__ = [
    "build_result",
    "generate_run_id",
    "load_result",
    "validate_result",
    "write_result",
]
