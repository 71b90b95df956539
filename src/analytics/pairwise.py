"""Pairwise correlation summaries shown alongside the regression insights."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy import stats as sp_stats

from analytics.binning import BinAnalysisResult
from constants import (
    MEAN_DIFF_THRESHOLD,
    MIN_BIN_PAIRS,
    PEARSON_MIN_ABS_R,
    PEARSON_P_THRESHOLD,
)


@dataclass(frozen=True)
class CorrelationSummary:
    predictor_id: str
    dependent_id: str
    correlation: float
    percentage_change: float
    is_significant: bool
    bin_analysis: Optional[BinAnalysisResult] = None


def pearson_correlation(pairs: Sequence[Tuple[float, float]]) -> Tuple[float, float]:
    """(r, p); (0, 1) for fewer than 3 pairs or a constant side."""
    if len(pairs) < 3:
        return 0.0, 1.0
    arr = np.asarray(pairs, dtype=np.float64)
    x, y = arr[:, 0], arr[:, 1]
    if np.ptp(x) == 0 or np.ptp(y) == 0:
        return 0.0, 1.0
    r, p = sp_stats.pearsonr(x, y)
    return float(r), float(p)


def mean_difference(pairs: Sequence[Tuple[float, float]]) -> float:
    """Mean outcome above the predictor's mid-range minus mean at or below it."""
    if len(pairs) < 2:
        return 0.0
    arr = np.asarray(pairs, dtype=np.float64)
    x, y = arr[:, 0], arr[:, 1]
    threshold = (x.min() + x.max()) / 2
    high, low = y[x > threshold], y[x <= threshold]
    if not len(high) or not len(low):
        return 0.0
    return float(high.mean() - low.mean())


def percentage_change(
    result: Optional[BinAnalysisResult],
    correlation: float,
    lower_is_better: bool = False,
) -> float:
    """Best/worst bin against baseline, signed so that positive means better sleep."""
    if result is None or not result.is_valid or not result.bins or result.baseline == 0:
        return 0.0
    averages = [b.average_dependent for b in result.bins]
    # Positive association on a higher-is-better metric (or negative on a
    # lower-is-better one) reports the highest bin; otherwise the lowest.
    pick_high = (correlation >= 0) != lower_is_better
    target = max(averages) if pick_high else min(averages)
    raw = (target - result.baseline) / result.baseline * 100
    return -raw if lower_is_better else raw


def summarize_pairs(
    pairs: Sequence[Tuple[float, float]],
    predictor_id: str,
    dependent_id: str,
    bin_analysis: Optional[BinAnalysisResult],
    *,
    continuous: bool,
    lower_is_better: bool = False,
) -> CorrelationSummary:
    """Pearson for continuous predictors, mean difference for event predictors."""
    if continuous:
        r, p = pearson_correlation(pairs)
        significant = p < PEARSON_P_THRESHOLD and abs(r) > PEARSON_MIN_ABS_R
        coefficient = r
    else:
        coefficient = mean_difference(pairs)
        active = sum(1 for v, _ in pairs if v > 0)
        significant = abs(coefficient) > MEAN_DIFF_THRESHOLD and active >= MIN_BIN_PAIRS

    return CorrelationSummary(
        predictor_id=predictor_id,
        dependent_id=dependent_id,
        correlation=coefficient,
        percentage_change=percentage_change(bin_analysis, coefficient, lower_is_better),
        is_significant=bool(significant),
        bin_analysis=bin_analysis,
    )
