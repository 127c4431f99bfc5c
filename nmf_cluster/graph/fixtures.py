"""Small named test graphs, given as row-major dense buffers."""

from nmf_cluster.sparse.matrix import SparseMatrix

# name -> (num_nodes, row-major adjacency)
FIXTURES: dict[str, tuple[int, tuple[float, ...]]] = {
    # Two triangles {0,1,2} and {3,4,5} joined by the edge 2-3.
    "two_triangles": (
        6,
        (
            0, 1, 1, 0, 0, 0,
            1, 0, 1, 0, 0, 0,
            1, 1, 0, 1, 0, 0,
            0, 0, 1, 0, 1, 1,
            0, 0, 0, 1, 0, 1,
            0, 0, 0, 1, 1, 0,
        ),
    ),
    # Three isolated self-loops.
    "identity3": (3, (1, 0, 0, 0, 1, 0, 0, 0, 1)),
    # Complete graph on three nodes, self-loops included.
    "ones3": (3, (1, 1, 1, 1, 1, 1, 1, 1, 1)),
    # Triangle without self-loops.
    "triangle3": (3, (0, 1, 1, 1, 0, 1, 1, 1, 0)),
}


def fixture_graph(name: str) -> SparseMatrix:
    """Build the adjacency matrix of a named fixture.

    Raises:
        KeyError: If ``name`` is not a known fixture.
    """
    if name not in FIXTURES:
        raise KeyError(
            f"Unknown graph fixture {name!r}, expected one of {sorted(FIXTURES)}"
        )
    n, values = FIXTURES[name]
    return SparseMatrix.from_dense(n, n, values)
