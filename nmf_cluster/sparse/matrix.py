"""Compressed-sparse-column matrices for input graphs and exported clusterings.

Storage is three numpy arrays: ``col_offsets`` (length ``cols + 1``),
``row_indices`` and ``values`` (length ``nnz``). Rows inside a column are
kept in whatever order they were written; nothing here re-sorts them.
"""

import logging
from typing import Iterator, Sequence

import numpy as np
import scipy.sparse

from nmf_cluster.sparse.errors import ContractViolation

log = logging.getLogger(__name__)


class SparseMatrix:
    """CSC matrix with direct access to its offset/index/value arrays.

    ``SparseMatrix(rows, cols, nnz)`` allocates zeroed storage for bulk
    construction: fill ``col_offsets``, ``row_indices`` and ``values``
    in place, then call :meth:`validate`.
    """

    def __init__(self, num_rows: int = 0, num_cols: int = 0, nnz: int = 0) -> None:
        if num_rows < 0 or num_cols < 0 or nnz < 0:
            raise ValueError(
                f"Matrix dimensions must be non-negative, got "
                f"rows={num_rows}, cols={num_cols}, nnz={nnz}"
            )
        self._num_rows = int(num_rows)
        self._num_cols = int(num_cols)
        self._col_offsets = np.zeros(self._num_cols + 1, dtype=np.int64)
        self._row_indices = np.zeros(int(nnz), dtype=np.int64)
        self._values = np.zeros(int(nnz), dtype=np.float64)

    # ── Construction ─────────────────────────────────────────────────

    @classmethod
    def from_arrays(
        cls,
        num_rows: int,
        num_cols: int,
        col_offsets: Sequence[int] | np.ndarray,
        row_indices: Sequence[int] | np.ndarray,
        values: Sequence[float] | np.ndarray,
    ) -> "SparseMatrix":
        """Build a matrix from existing CSC arrays (copied) and validate it."""
        offsets = np.array(col_offsets, dtype=np.int64)
        rows = np.array(row_indices, dtype=np.int64)
        vals = np.array(values, dtype=np.float64)
        if rows.shape != vals.shape:
            raise ContractViolation(
                f"row_indices ({rows.shape[0]}) and values ({vals.shape[0]}) "
                f"must have the same length"
            )
        mat = cls(num_rows, num_cols, 0)
        mat._col_offsets = offsets
        mat._row_indices = rows
        mat._values = vals
        mat.validate()
        return mat

    @classmethod
    def from_dense(
        cls, rows: int, cols: int, values: Sequence[float] | np.ndarray
    ) -> "SparseMatrix":
        """Build a matrix from a row-major dense buffer, omitting exact zeros.

        Intended for small fixtures; the dense buffer is materialised in full.

        Args:
            rows: Number of rows.
            cols: Number of columns.
            values: Row-major buffer of length ``rows * cols``.

        Returns:
            The compressed matrix, rows ascending within each column.
        """
        dense = np.asarray(values, dtype=np.float64).ravel()
        if dense.shape[0] != rows * cols:
            raise ValueError(
                f"Dense buffer has {dense.shape[0]} values, expected "
                f"{rows} * {cols} = {rows * cols}"
            )
        dense = dense.reshape(rows, cols)
        nonzero_per_col = [np.flatnonzero(dense[:, j]) for j in range(cols)]
        nnz = sum(len(r) for r in nonzero_per_col)

        mat = cls(rows, cols, nnz)
        k = 0
        for j, col_rows in enumerate(nonzero_per_col):
            end = k + len(col_rows)
            mat._row_indices[k:end] = col_rows
            mat._values[k:end] = dense[col_rows, j]
            k = end
            mat._col_offsets[j + 1] = k
        return mat

    @classmethod
    def from_scipy(cls, matrix: scipy.sparse.spmatrix) -> "SparseMatrix":
        """Copy any scipy sparse matrix into CSC storage.

        Explicitly stored zeros are dropped; row order within a column is
        whatever scipy produced.
        """
        csc = scipy.sparse.csc_matrix(matrix, dtype=np.float64, copy=True)
        csc.eliminate_zeros()
        rows, cols = csc.shape
        return cls.from_arrays(rows, cols, csc.indptr, csc.indices, csc.data)

    def to_scipy(self) -> scipy.sparse.csc_matrix:
        """Independent ``scipy.sparse.csc_matrix`` copy of this matrix."""
        nnz = self.nnz
        return scipy.sparse.csc_matrix(
            (
                self._values[:nnz].copy(),
                self._row_indices[:nnz].copy(),
                self._col_offsets.copy(),
            ),
            shape=self.shape,
        )

    def copy(self) -> "SparseMatrix":
        return SparseMatrix.from_arrays(
            self._num_rows,
            self._num_cols,
            self._col_offsets,
            self._row_indices,
            self._values,
        )

    # ── Accessors ────────────────────────────────────────────────────

    @property
    def rows(self) -> int:
        return self._num_rows

    @property
    def cols(self) -> int:
        return self._num_cols

    @property
    def shape(self) -> tuple[int, int]:
        return (self._num_rows, self._num_cols)

    @property
    def nnz(self) -> int:
        return int(self._col_offsets[self._num_cols])

    @property
    def col_offsets(self) -> np.ndarray:
        return self._col_offsets

    @property
    def row_indices(self) -> np.ndarray:
        return self._row_indices

    @property
    def values(self) -> np.ndarray:
        return self._values

    def column(self, j: int) -> Iterator[tuple[int, float]]:
        """Iterate ``(row, value)`` pairs of column ``j`` in storage order.

        Each call returns a fresh generator, so a column can be walked
        any number of times.
        """
        if not 0 <= j < self._num_cols:
            raise ContractViolation(
                f"Column {j} out of range for a matrix with {self._num_cols} columns"
            )
        start = int(self._col_offsets[j])
        end = int(self._col_offsets[j + 1])
        for k in range(start, end):
            yield int(self._row_indices[k]), float(self._values[k])

    def column_nnz(self, j: int) -> int:
        return int(self._col_offsets[j + 1] - self._col_offsets[j])

    def entries(self) -> Iterator[tuple[int, int, float]]:
        """All stored ``(row, col, value)`` triples in column order."""
        for j in range(self._num_cols):
            for row, value in self.column(j):
                yield row, j, value

    def to_dense(self) -> np.ndarray:
        dense = np.zeros(self.shape, dtype=np.float64)
        for row, col, value in self.entries():
            dense[row, col] += value
        return dense

    def diagonal(self) -> np.ndarray:
        """Main diagonal as a dense array (duplicates summed)."""
        diag = np.zeros(min(self.shape), dtype=np.float64)
        for row, col, value in self.entries():
            if row == col:
                diag[row] += value
        return diag

    def symmetrized(self) -> "SparseMatrix":
        """``(A + A^T) / 2`` for a square matrix."""
        if self._num_rows != self._num_cols:
            raise ValueError(
                f"Only square matrices can be symmetrized, got shape {self.shape}"
            )
        a = self.to_scipy()
        sym = SparseMatrix.from_scipy((a + a.T) * 0.5)
        log.debug(
            "Symmetrized %dx%d matrix: nnz %d -> %d",
            self._num_rows, self._num_cols, self.nnz, sym.nnz,
        )
        return sym

    # ── Invariants ───────────────────────────────────────────────────

    def offset_errors(self) -> list[str]:
        """Check the CSC layout.

        Returns:
            List of error strings (empty = well formed).
        """
        errors: list[str] = []
        offsets = self._col_offsets
        if offsets.shape[0] != self._num_cols + 1:
            errors.append(
                f"col_offsets has length {offsets.shape[0]}, "
                f"expected {self._num_cols + 1}"
            )
            return errors
        if offsets[0] != 0:
            errors.append(f"col_offsets[0] = {offsets[0]}, expected 0")
        if np.any(np.diff(offsets) < 0):
            errors.append("col_offsets is not non-decreasing")
        capacity = self._row_indices.shape[0]
        if offsets[-1] != capacity:
            errors.append(
                f"col_offsets[{self._num_cols}] = {offsets[-1]}, "
                f"expected nnz = {capacity}"
            )
        stored = self._row_indices[: max(0, min(int(offsets[-1]), capacity))]
        if stored.size and (stored.min() < 0 or stored.max() >= self._num_rows):
            errors.append(f"row index out of range [0, {self._num_rows})")
        return errors

    def validate(self) -> None:
        """Raise :class:`ContractViolation` if the CSC layout is malformed."""
        errors = self.offset_errors()
        if errors:
            raise ContractViolation(
                "Malformed SparseMatrix:\n" + "\n".join(f"  - {e}" for e in errors)
            )

    # ── Printing ─────────────────────────────────────────────────────

    def format(self) -> str:
        """One ``(row,col) -> value`` line per stored entry, column order."""
        return "".join(
            f"({row},{col}) -> {value:g}\n" for row, col, value in self.entries()
        )

    def __str__(self) -> str:
        return self.format()

    def __repr__(self) -> str:
        return f"SparseMatrix(rows={self._num_rows}, cols={self._num_cols}, nnz={self.nnz})"
