"""
Tests for the dense matrix primitives.

Covers: construction, transpose, multiply/subtract shape checks,
Gauss-Jordan inverse with partial pivoting, singular detection.
"""
import sys
import os

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from analytics.matrix_ops import (
    DimensionMismatchError,
    Matrix,
    MatrixError,
    SingularMatrixError,
)


# ─── Construction ─────────────────────────────────────────────


class TestConstruction:
    """Shape validation and accessors."""

    def test_row_major_layout(self):
        m = Matrix(2, 3, [1, 2, 3, 4, 5, 6])
        assert m.shape == (2, 3)
        assert m[0, 2] == 3
        assert m[1, 0] == 4

    def test_wrong_value_count_raises(self):
        with pytest.raises(DimensionMismatchError):
            Matrix(2, 2, [1, 2, 3])

    def test_ragged_rows_raise(self):
        with pytest.raises(DimensionMismatchError):
            Matrix.from_rows([[1, 2], [3]])

    def test_column_vector(self):
        v = Matrix.column_vector([3, 4])
        assert v.shape == (2, 1)
        assert v.sum_of_squares() == 25.0

    def test_errors_are_value_errors(self):
        assert issubclass(DimensionMismatchError, MatrixError)
        assert issubclass(SingularMatrixError, ValueError)

    def test_to_numpy_returns_copy(self):
        m = Matrix.from_rows([[1, 2], [3, 4]])
        arr = m.to_numpy()
        arr[0, 0] = 99
        assert m[0, 0] == 1

    def test_equality(self):
        assert Matrix.from_rows([[1, 2]]) == Matrix(1, 2, [1, 2])
        assert Matrix.from_rows([[1, 2]]) != Matrix(2, 1, [1, 2])


# ─── Transpose / multiply / subtract ──────────────────────────


class TestArithmetic:
    """Basic operations and dimension errors."""

    def test_transpose(self):
        t = Matrix.from_rows([[1, 2, 3], [4, 5, 6]]).transpose()
        assert t.shape == (3, 2)
        assert t[0, 1] == 4
        assert t[2, 0] == 3

    def test_multiply(self):
        a = Matrix.from_rows([[1, 2], [3, 4]])
        b = Matrix.column_vector([5, 6])
        c = a.multiply(b)
        assert c.shape == (2, 1)
        assert c[0, 0] == 17
        assert c[1, 0] == 39

    def test_multiply_mismatch_raises(self):
        a = Matrix.from_rows([[1, 2, 3]])
        b = Matrix.from_rows([[1, 2]])
        with pytest.raises(DimensionMismatchError):
            a.multiply(b)

    def test_subtract(self):
        a = Matrix.from_rows([[5, 5], [5, 5]])
        b = Matrix.from_rows([[1, 2], [3, 4]])
        assert a.subtract(b) == Matrix.from_rows([[4, 3], [2, 1]])

    def test_subtract_mismatch_raises(self):
        with pytest.raises(DimensionMismatchError):
            Matrix.from_rows([[1, 2]]).subtract(Matrix.from_rows([[1], [2]]))

    def test_operations_do_not_modify_inputs(self):
        a = Matrix.from_rows([[1, 2], [3, 4]])
        before = a.data
        a.transpose()
        a.multiply(a)
        a.inverse()
        assert a.data == before


# ─── Inverse ──────────────────────────────────────────────────


class TestInverse:
    """Gauss-Jordan elimination with partial pivoting."""

    def test_known_2x2(self):
        inv = Matrix.from_rows([[4, 7], [2, 6]]).inverse()
        expected = np.array([[0.6, -0.7], [-0.2, 0.4]])
        assert np.allclose(inv.to_numpy(), expected)

    def test_zero_leading_entry_needs_pivot(self):
        m = Matrix.from_rows([[0, 1], [1, 0]])
        assert np.allclose(m.inverse().to_numpy(), m.to_numpy())

    def test_product_with_inverse_is_identity(self):
        np.random.seed(42)
        a = Matrix.from_numpy(np.random.rand(5, 5) + 5 * np.eye(5))
        prod = a.multiply(a.inverse())
        assert np.allclose(prod.to_numpy(), np.eye(5), atol=1e-10)

    def test_matches_numpy(self):
        np.random.seed(3)
        arr = np.random.randn(4, 4) + 4 * np.eye(4)
        inv = Matrix.from_numpy(arr).inverse().to_numpy()
        assert np.allclose(inv, np.linalg.inv(arr))

    def test_singular_raises(self):
        with pytest.raises(SingularMatrixError):
            Matrix.from_rows([[1, 2], [2, 4]]).inverse()

    def test_zero_row_raises(self):
        with pytest.raises(SingularMatrixError):
            Matrix.from_rows([[1, 0, 0], [0, 0, 0], [0, 0, 1]]).inverse()

    def test_tiny_pivot_is_singular(self):
        with pytest.raises(SingularMatrixError):
            Matrix.from_rows([[1e-12, 0], [0, 1e-12]]).inverse()

    def test_non_square_raises(self):
        with pytest.raises(DimensionMismatchError):
            Matrix.from_rows([[1, 2, 3], [4, 5, 6]]).inverse()

    def test_identity_inverse(self):
        assert Matrix.identity(3).inverse() == Matrix.identity(3)
