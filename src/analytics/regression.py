"""
Multivariate OLS with inferential statistics.

Solves the normal equations β = (XᵗX)⁻¹Xᵗy on the dense matrix primitives,
then derives per-coefficient standard errors, t-statistics, two-tailed
p-values and 95% confidence intervals.

P-values:
  • df > 30  → normal approximation 2·(1 − Φ(|t|)), Φ from the
    Abramowitz-Stegun erf rational approximation.
  • df ≤ 30  → the historical polynomial blend 2·Φ(|t|)·poly(1/(1+0.2316419|t|)),
    kept for parity with earlier releases and clamped to [0, 1].
  • method="exact" → Student-t survival function (scipy), any df.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy import stats as sp_stats

from analytics.matrix_ops import DimensionMismatchError, Matrix, MatrixError
from constants import CI_Z_SCORE, INTERCEPT_ID

log = logging.getLogger("analytics.regression")

PVALUE_METHODS = ("approximate", "exact")

# Abramowitz & Stegun 7.1.26
_ERF_A = (0.254829592, -0.284496736, 1.421413741, -1.453152027, 1.061405429)
_ERF_P = 0.3275911

# Small-sample polynomial blend
_TAIL_P = 0.2316419
_TAIL_B = (0.319381530, -0.356563782, 1.781477937, -1.821255978, 1.330274429)

# Above this many residual degrees of freedom the normal approximation is used
_NORMAL_DF = 30


class DegreesOfFreedomError(ValueError):
    """Raised when n − k − 1 ≤ 0 (more parameters than observations allow)."""


@dataclass(frozen=True)
class RegressionResult:
    predictor_id: str
    coefficient: float
    standard_error: float
    t_statistic: float
    p_value: float
    confidence_interval: Tuple[float, float]

    @property
    def is_intercept(self) -> bool:
        return self.predictor_id == INTERCEPT_ID


def normal_cdf(x: float) -> float:
    """Standard normal CDF via the A&S erf approximation (|error| < 1.5e-7)."""
    if math.isnan(x):
        return float("nan")
    sign = -1.0 if x < 0 else 1.0
    ax = abs(x) / math.sqrt(2.0)
    t = 1.0 / (1.0 + _ERF_P * ax)
    a1, a2, a3, a4, a5 = _ERF_A
    erf = 1.0 - (((((a5 * t + a4) * t) + a3) * t + a2) * t + a1) * t * math.exp(-ax * ax)
    return 0.5 * (1.0 + sign * erf)


def two_tailed_p_value(t_stat: float, df: int, method: str = "approximate") -> float:
    if method not in PVALUE_METHODS:
        raise ValueError(f"Unknown p-value method {method!r}; expected one of {PVALUE_METHODS}")
    if math.isnan(t_stat):
        return float("nan")
    t = abs(t_stat)

    if method == "exact":
        return float(min(1.0, 2.0 * sp_stats.t.sf(t, df)))

    if df > _NORMAL_DF:
        return 2.0 * (1.0 - normal_cdf(t))

    pp = 1.0 / (1.0 + _TAIL_P * t)
    b1, b2, b3, b4, b5 = _TAIL_B
    poly = b1 * pp + b2 * pp ** 2 + b3 * pp ** 3 + b4 * pp ** 4 + b5 * pp ** 5
    p = 2.0 * normal_cdf(t) * poly
    return min(1.0, max(0.0, p))


def _design_matrix(y: Sequence[float], xs: Sequence[Sequence[float]]) -> Tuple[Matrix, Matrix]:
    n = len(y)
    for i, x in enumerate(xs):
        if len(x) != n:
            raise DimensionMismatchError(f"Independent vector {i} has length {len(x)}, expected {n}")
    cols = [np.ones(n)] + [np.asarray(x, dtype=np.float64) for x in xs]
    return Matrix.from_numpy(np.column_stack(cols)), Matrix.column_vector(y)


def fit_regression(
    y: Sequence[float],
    xs: Sequence[Sequence[float]],
    names: Optional[Sequence[str]] = None,
    pvalue_method: str = "approximate",
) -> List[RegressionResult]:
    """Fit y on [1 | x1 … xk]; index 0 of the result is the intercept.

    Raises DegreesOfFreedomError, SingularMatrixError or DimensionMismatchError.
    """
    k = len(xs)
    if names is None:
        names = [f"x{i + 1}" for i in range(k)]
    if len(names) != k:
        raise ValueError(f"{len(names)} names for {k} independent vectors")

    X, Y = _design_matrix(y, xs)
    n = X.rows
    df = n - k - 1
    if df <= 0:
        raise DegreesOfFreedomError(f"n={n}, k={k} leaves {df} residual degrees of freedom")

    Xt = X.transpose()
    xtx_inv = Xt.multiply(X).inverse()
    beta = xtx_inv.multiply(Xt).multiply(Y)
    residuals = Y.subtract(X.multiply(beta))
    sigma2 = residuals.sum_of_squares() / df

    coef = beta.column(0)
    diag = np.diag(xtx_inv.to_numpy())
    with np.errstate(divide="ignore", invalid="ignore"):
        se = np.sqrt(diag * sigma2)
        t_stats = coef / se

    results = []
    for i, pid in enumerate([INTERCEPT_ID, *names]):
        c, s, t = float(coef[i]), float(se[i]), float(t_stats[i])
        results.append(RegressionResult(
            predictor_id=pid,
            coefficient=c,
            standard_error=s,
            t_statistic=t,
            p_value=two_tailed_p_value(t, df, pvalue_method),
            confidence_interval=(c - CI_Z_SCORE * s, c + CI_Z_SCORE * s),
        ))
    return results


def perform_regression(
    y: Sequence[float],
    xs: Sequence[Sequence[float]],
    names: Optional[Sequence[str]] = None,
    pvalue_method: str = "approximate",
) -> List[RegressionResult]:
    """Like fit_regression, but returns [] when the model cannot be fit."""
    try:
        return fit_regression(y, xs, names=names, pvalue_method=pvalue_method)
    except (MatrixError, DegreesOfFreedomError) as e:
        log.warning("   Regression skipped: %s", e)
        return []
