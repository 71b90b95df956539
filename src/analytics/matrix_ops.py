"""Dense matrix primitives for the normal-equation regression solver."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence, Tuple

import numpy as np

from constants import PIVOT_TOLERANCE

log = logging.getLogger("analytics.matrix_ops")


class MatrixError(ValueError):
    """Base class for matrix shape and conditioning failures."""


class DimensionMismatchError(MatrixError):
    pass


class SingularMatrixError(MatrixError):
    pass


class Matrix:
    """Row-major dense matrix with a fixed shape.

    Storage is a read-only float64 numpy array, so every operation returns
    a new Matrix and inputs are never modified.
    """

    __slots__ = ("_data",)

    def __init__(self, rows: int, columns: int, data: Sequence[float]):
        if rows < 0 or columns < 0:
            raise DimensionMismatchError(f"Negative shape {rows}x{columns}")
        arr = np.array(data, dtype=np.float64).reshape(-1)
        if arr.size != rows * columns:
            raise DimensionMismatchError(
                f"{rows}x{columns} matrix needs {rows * columns} values, got {arr.size}"
            )
        arr = arr.reshape(rows, columns)
        arr.flags.writeable = False
        self._data = arr

    # ─── Constructors ──────────────────────────────────────────

    @classmethod
    def from_numpy(cls, arr: np.ndarray) -> "Matrix":
        arr = np.asarray(arr, dtype=np.float64)
        if arr.ndim != 2:
            raise DimensionMismatchError(f"Expected a 2-D array, got {arr.ndim}-D")
        return cls(arr.shape[0], arr.shape[1], arr.ravel())

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[float]]) -> "Matrix":
        rows = [list(r) for r in rows]
        if not rows:
            return cls(0, 0, [])
        width = len(rows[0])
        if any(len(r) != width for r in rows):
            raise DimensionMismatchError("Ragged rows")
        return cls(len(rows), width, [v for r in rows for v in r])

    @classmethod
    def column_vector(cls, values: Sequence[float]) -> "Matrix":
        values = list(values)
        return cls(len(values), 1, values)

    @classmethod
    def identity(cls, size: int) -> "Matrix":
        return cls.from_numpy(np.eye(size))

    # ─── Accessors ─────────────────────────────────────────────

    @property
    def rows(self) -> int:
        return self._data.shape[0]

    @property
    def columns(self) -> int:
        return self._data.shape[1]

    @property
    def shape(self) -> Tuple[int, int]:
        return self._data.shape

    @property
    def data(self) -> Tuple[float, ...]:
        """Row-major flat copy of the values."""
        return tuple(float(v) for v in self._data.ravel())

    def to_numpy(self) -> np.ndarray:
        return self._data.copy()

    def column(self, j: int) -> np.ndarray:
        return self._data[:, j].copy()

    def __getitem__(self, idx: Tuple[int, int]) -> float:
        i, j = idx
        return float(self._data[i, j])

    def __eq__(self, other) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and np.array_equal(self._data, other._data)

    def __repr__(self) -> str:
        return f"Matrix({self.rows}x{self.columns})"

    # ─── Operations ────────────────────────────────────────────

    def transpose(self) -> "Matrix":
        return Matrix.from_numpy(self._data.T)

    def multiply(self, other: "Matrix") -> "Matrix":
        if self.columns != other.rows:
            raise DimensionMismatchError(
                f"Cannot multiply {self.rows}x{self.columns} by {other.rows}x{other.columns}"
            )
        return Matrix.from_numpy(self._data @ other._data)

    def subtract(self, other: "Matrix") -> "Matrix":
        if self.shape != other.shape:
            raise DimensionMismatchError(
                f"Cannot subtract {other.rows}x{other.columns} from {self.rows}x{self.columns}"
            )
        return Matrix.from_numpy(self._data - other._data)

    def sum_of_squares(self) -> float:
        return float(np.sum(self._data ** 2))

    def inverse(self) -> "Matrix":
        """Gauss-Jordan elimination on [A | I] with partial pivoting.

        Raises SingularMatrixError as soon as the best available pivot in a
        column is below PIVOT_TOLERANCE in absolute value.
        """
        n = self.rows
        if n != self.columns:
            raise DimensionMismatchError(f"Cannot invert non-square {self.rows}x{self.columns}")

        aug = np.hstack([self._data.astype(np.float64), np.eye(n)])
        for col in range(n):
            pivot_row = col + int(np.argmax(np.abs(aug[col:, col])))
            pivot = aug[pivot_row, col]
            if abs(pivot) < PIVOT_TOLERANCE:
                log.debug("Singular matrix: pivot %.3e in column %d", pivot, col)
                raise SingularMatrixError(f"Pivot {pivot:.3e} in column {col} below tolerance")
            if pivot_row != col:
                aug[[col, pivot_row]] = aug[[pivot_row, col]]
            aug[col] /= aug[col, col]
            factors = aug[:, col].copy()
            factors[col] = 0.0
            aug -= np.outer(factors, aug[col])

        return Matrix.from_numpy(aug[:, n:])
