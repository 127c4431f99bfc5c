"""Graph loading from fixtures and files, with adjacency validation.

Supported sources:
- a fixture name (see ``FIXTURES``)
- ``.npz``: a scipy sparse matrix written by ``scipy.sparse.save_npz``
- ``.mtx``: Matrix Market
- anything else: whitespace edge list, one ``i j [weight]`` per line,
  ``#`` comments allowed
"""

import logging
from pathlib import Path

import numpy as np
import scipy.io
import scipy.sparse

from nmf_cluster.graph.fixtures import FIXTURES, fixture_graph
from nmf_cluster.sparse.matrix import SparseMatrix

log = logging.getLogger(__name__)


class GraphLoadError(Exception):
    """Raised when a graph source cannot be read or fails validation."""


def validate_adjacency(matrix: SparseMatrix) -> list[str]:
    """Validate an adjacency matrix for clustering.

    Checks (cheapest first):
    1. Square shape
    2. Well-formed CSC layout
    3. Finite values
    4. Non-negative values

    Symmetry is not required; the objective works on ``(A + A^T) / 2``.

    Returns:
        List of error strings (empty = valid graph).
    """
    errors: list[str] = []

    if matrix.rows != matrix.cols:
        errors.append(f"Adjacency must be square, got shape {matrix.shape}")

    errors.extend(matrix.offset_errors())
    if errors:
        return errors

    values = matrix.values[: matrix.nnz]
    n_nonfinite = int((~np.isfinite(values)).sum())
    if n_nonfinite:
        errors.append(f"{n_nonfinite} non-finite edge weights")

    n_negative = int((values < 0).sum())
    if n_negative:
        errors.append(f"{n_negative} negative edge weights")

    return errors


def _read_edge_list(path: Path, num_nodes: int | None, undirected: bool) -> SparseMatrix:
    table = np.loadtxt(path, comments="#", ndmin=2, dtype=np.float64)
    if table.size == 0:
        n = num_nodes or 0
        return SparseMatrix(n, n, 0)
    if table.shape[1] not in (2, 3):
        raise GraphLoadError(
            f"{path}: expected 2 or 3 columns (i j [weight]), got {table.shape[1]}"
        )

    src = table[:, 0]
    dst = table[:, 1]
    if np.any(src != np.round(src)) or np.any(dst != np.round(dst)):
        raise GraphLoadError(f"{path}: node ids must be integers")
    src = src.astype(np.int64)
    dst = dst.astype(np.int64)
    if src.min() < 0 or dst.min() < 0:
        raise GraphLoadError(f"{path}: node ids must be non-negative")
    weights = table[:, 2] if table.shape[1] == 3 else np.ones(len(src))

    n = int(max(src.max(), dst.max())) + 1
    if num_nodes is not None:
        if num_nodes < n:
            raise GraphLoadError(
                f"{path}: node id {n - 1} out of range for num_nodes={num_nodes}"
            )
        n = num_nodes

    if undirected:
        off_diag = src != dst
        src, dst = (
            np.concatenate([src, dst[off_diag]]),
            np.concatenate([dst, src[off_diag]]),
        )
        weights = np.concatenate([weights, weights[off_diag]])

    # Duplicate edges are summed by the COO -> CSC conversion.
    coo = scipy.sparse.coo_matrix((weights, (src, dst)), shape=(n, n))
    return SparseMatrix.from_scipy(coo)


def load_graph(
    source: str | Path,
    num_nodes: int | None = None,
    undirected: bool = False,
) -> SparseMatrix:
    """Load and validate a graph adjacency matrix.

    Args:
        source: Fixture name or path to an ``.npz``, ``.mtx`` or edge list file.
        num_nodes: Node count for edge lists (default: largest id + 1).
        undirected: For edge lists, add each edge in both directions.

    Returns:
        The adjacency matrix as CSC.

    Raises:
        GraphLoadError: If the source is missing, unreadable or invalid.
    """
    if isinstance(source, str) and source in FIXTURES:
        matrix = fixture_graph(source)
        log.info("Loaded fixture graph %r", source)
    else:
        path = Path(source)
        if not path.exists():
            raise GraphLoadError(
                f"Graph source {str(source)!r} is neither a file nor a fixture "
                f"({', '.join(sorted(FIXTURES))})"
            )
        try:
            if path.suffix == ".npz":
                matrix = SparseMatrix.from_scipy(scipy.sparse.load_npz(str(path)))
            elif path.suffix == ".mtx":
                matrix = SparseMatrix.from_scipy(scipy.io.mmread(str(path)))
            else:
                matrix = _read_edge_list(path, num_nodes, undirected)
        except (OSError, ValueError) as e:
            raise GraphLoadError(f"Could not read graph from {path}: {e}") from e
        log.info("Loaded graph from %s", path)

    errors = validate_adjacency(matrix)
    if errors:
        raise GraphLoadError(
            "Graph validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )

    log.info("Graph: n=%d, edges=%d", matrix.rows, matrix.nnz)
    return matrix


def save_graph(matrix: SparseMatrix, path: str | Path) -> Path:
    """Write an adjacency matrix as a scipy ``.npz`` file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    scipy.sparse.save_npz(str(path), matrix.to_scipy())
    log.info("Graph saved to %s", path)
    return path
