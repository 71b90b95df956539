"""
Tests for the OLS regression engine.

Covers: agreement with statsmodels OLS, residual orthogonality, the
noiseless scaled series, p-value approximations, CI construction and
the degenerate-input error paths.
"""
import sys
import os
import math

import numpy as np
import pytest
import statsmodels.api as sm
from scipy import stats as sp_stats

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from analytics.alignment import min_max_scale
from analytics.matrix_ops import DimensionMismatchError, SingularMatrixError
from analytics.regression import (
    DegreesOfFreedomError,
    RegressionResult,
    fit_regression,
    normal_cdf,
    perform_regression,
    two_tailed_p_value,
)
from constants import CI_Z_SCORE, INTERCEPT_ID


# ─── Helpers ──────────────────────────────────────────────────


def _make_data(n=60, seed=42):
    np.random.seed(seed)
    x1 = np.random.randn(n)
    x2 = np.random.randn(n)
    y = 2.0 + 1.5 * x1 - 0.7 * x2 + np.random.randn(n) * 0.5
    return y, x1, x2


# ─── Normal CDF ───────────────────────────────────────────────


class TestNormalCdf:
    """Abramowitz-Stegun approximation accuracy."""

    def test_center(self):
        assert abs(normal_cdf(0.0) - 0.5) < 1e-6

    @pytest.mark.parametrize("x", [-3.0, -1.0, 0.5, 1.96, 2.5, 4.0])
    def test_matches_scipy(self, x):
        assert abs(normal_cdf(x) - sp_stats.norm.cdf(x)) < 1e-6

    def test_symmetry(self):
        for x in [0.3, 1.2, 2.7]:
            assert abs(normal_cdf(x) + normal_cdf(-x) - 1.0) < 1e-9

    def test_nan_propagates(self):
        assert math.isnan(normal_cdf(float("nan")))


# ─── P-values ─────────────────────────────────────────────────


class TestPValue:
    """Two-tailed p-values for both approximation branches."""

    def test_large_df_uses_normal(self):
        p = two_tailed_p_value(1.96, 100)
        assert abs(p - 0.05) < 1e-3

    def test_sign_does_not_matter(self):
        assert two_tailed_p_value(-2.3, 50) == two_tailed_p_value(2.3, 50)

    def test_small_df_clamped_to_one(self):
        # The polynomial blend exceeds 1 near t=0
        assert two_tailed_p_value(0.0, 10) == 1.0

    def test_small_df_polynomial_value(self):
        t = 3.0
        pp = 1.0 / (1.0 + 0.2316419 * t)
        poly = (0.319381530 * pp - 0.356563782 * pp ** 2 + 1.781477937 * pp ** 3
                - 1.821255978 * pp ** 4 + 1.330274429 * pp ** 5)
        expected = 2.0 * normal_cdf(t) * poly
        assert abs(two_tailed_p_value(t, 20) - expected) < 1e-12

    def test_boundary_df_30_uses_polynomial(self):
        assert two_tailed_p_value(2.0, 30) != two_tailed_p_value(2.0, 31)

    def test_exact_matches_student_t(self):
        p = two_tailed_p_value(2.0, 10, method="exact")
        assert abs(p - 2 * sp_stats.t.sf(2.0, 10)) < 1e-12

    def test_infinite_t_is_zero(self):
        assert two_tailed_p_value(float("inf"), 40) == 0.0
        assert two_tailed_p_value(float("inf"), 10) == 0.0

    def test_nan_t_is_nan(self):
        assert math.isnan(two_tailed_p_value(float("nan"), 40))

    def test_unknown_method_raises(self):
        with pytest.raises(ValueError):
            two_tailed_p_value(1.0, 10, method="bootstrap")


# ─── OLS fit ──────────────────────────────────────────────────


class TestFitRegression:
    """Coefficients, standard errors and statistics."""

    def test_intercept_first(self):
        y, x1, x2 = _make_data()
        res = fit_regression(y, [x1, x2], names=["a", "b"])
        assert [r.predictor_id for r in res] == [INTERCEPT_ID, "a", "b"]
        assert res[0].is_intercept
        assert isinstance(res[1], RegressionResult)

    def test_default_names(self):
        y, x1, x2 = _make_data()
        res = fit_regression(y, [x1, x2])
        assert [r.predictor_id for r in res[1:]] == ["x1", "x2"]

    def test_matches_statsmodels(self):
        y, x1, x2 = _make_data()
        res = fit_regression(y, [x1, x2], pvalue_method="exact")
        ols = sm.OLS(y, sm.add_constant(np.column_stack([x1, x2]))).fit()

        coef = np.array([r.coefficient for r in res])
        se = np.array([r.standard_error for r in res])
        t = np.array([r.t_statistic for r in res])
        p = np.array([r.p_value for r in res])
        assert np.allclose(coef, ols.params, rtol=1e-8), f"{coef} vs {ols.params}"
        assert np.allclose(se, ols.bse, rtol=1e-8), f"{se} vs {ols.bse}"
        assert np.allclose(t, ols.tvalues, rtol=1e-8)
        assert np.allclose(p, ols.pvalues, rtol=1e-6, atol=1e-12)

    def test_normal_approximation_close_to_exact_for_large_df(self):
        y, x1, x2 = _make_data(n=200)
        approx = fit_regression(y, [x1, x2])
        exact = fit_regression(y, [x1, x2], pvalue_method="exact")
        for a, e in zip(approx, exact):
            assert abs(a.p_value - e.p_value) < 0.01

    def test_residuals_orthogonal_to_design(self):
        y, x1, x2 = _make_data()
        res = fit_regression(y, [x1, x2])
        X = np.column_stack([np.ones(len(y)), x1, x2])
        beta = np.array([r.coefficient for r in res])
        e = y - X @ beta
        assert np.allclose(X.T @ e, 0.0, atol=1e-8)

    def test_confidence_interval(self):
        y, x1, x2 = _make_data()
        for r in fit_regression(y, [x1, x2]):
            lo, hi = r.confidence_interval
            assert abs(lo - (r.coefficient - CI_Z_SCORE * r.standard_error)) < 1e-12
            assert abs(hi - (r.coefficient + CI_Z_SCORE * r.standard_error)) < 1e-12
            assert lo <= r.coefficient <= hi

    def test_noiseless_scaled_series(self):
        series = np.arange(60, 120, 2, dtype=float)
        assert len(series) == 30 and series[-1] == 118
        scaled = min_max_scale(series)
        res = fit_regression(scaled, [scaled])
        slope = res[1]
        assert abs(slope.coefficient - 1.0) < 1e-9, f"coef={slope.coefficient}"
        assert slope.p_value < 0.01, f"p={slope.p_value}"

    def test_recovers_true_signs(self):
        y, x1, x2 = _make_data()
        res = fit_regression(y, [x1, x2])
        assert res[1].coefficient > 0
        assert res[2].coefficient < 0
        assert res[1].p_value < 0.01


# ─── Degenerate inputs ────────────────────────────────────────


class TestDegenerateInputs:
    """Error paths and the non-raising wrapper."""

    def test_no_degrees_of_freedom(self):
        y = [1.0, 2.0, 3.0]
        xs = [[1.0, 0.0, 1.0], [0.0, 1.0, 1.0]]
        with pytest.raises(DegreesOfFreedomError):
            fit_regression(y, xs)
        assert perform_regression(y, xs) == []

    def test_empty_input(self):
        with pytest.raises(DegreesOfFreedomError):
            fit_regression([], [])

    def test_collinear_predictors_singular(self):
        x = np.arange(40, dtype=float)
        y = np.arange(40, dtype=float) * 2 + 1
        with pytest.raises(SingularMatrixError):
            fit_regression(y, [x, x])
        assert perform_regression(y, [x, x]) == []

    def test_all_zero_predictor_singular(self):
        y, x1, _ = _make_data()
        with pytest.raises(SingularMatrixError):
            fit_regression(y, [x1, np.zeros(len(y))])

    def test_length_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            fit_regression([1.0] * 10, [[1.0] * 9])
        assert perform_regression([1.0] * 10, [[1.0] * 9]) == []

    def test_name_count_mismatch(self):
        y, x1, x2 = _make_data()
        with pytest.raises(ValueError):
            fit_regression(y, [x1, x2], names=["only_one"])

    def test_inputs_not_modified(self):
        y, x1, x2 = _make_data()
        y_copy, x1_copy = y.copy(), x1.copy()
        fit_regression(y, [x1, x2])
        assert np.array_equal(y, y_copy)
        assert np.array_equal(x1, x1_copy)
