"""
Adaptive bucket breakdowns of an outcome across a predictor's raw range.

Continuous predictors get 2-6 equal-width bins depending on sample size;
binary predictors get "Not Completed" / "Completed". Every pair lands in
exactly one bin (the first whose inclusive range contains it) and empty
bins are dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from constants import HABITS_OVERVIEW_ID, MIN_BIN_PAIRS, UNIT_MINUTES

log = logging.getLogger("analytics.binning")

STATUS_VALID = "valid"

LABEL_NOT_COMPLETED = "Not Completed"
LABEL_COMPLETED = "Completed"
BINARY_THRESHOLD = 0.5

# (max sample count, bin count); anything larger gets 6 bins
BIN_COUNT_STEPS = [(6, 2), (15, 3), (30, 4), (50, 5)]
MAX_BIN_COUNT = 6


@dataclass(frozen=True)
class InsufficientData:
    current: int
    required: int


@dataclass(frozen=True)
class Bin:
    """Bucket of days. Bounds are inclusive, except the binary "Not Completed"
    bin which covers [0, 0.5): a value of exactly 0.5 counts as completed."""

    range_label: str
    lower_bound: float
    upper_bound: float
    average_dependent: float
    sample_count: int


@dataclass(frozen=True)
class BinAnalysisResult:
    predictor_id: str
    dependent_id: str
    bins: Tuple[Bin, ...]
    total_samples: int
    baseline: float
    status: Union[str, InsufficientData] = STATUS_VALID

    @property
    def is_valid(self) -> bool:
        return self.status == STATUS_VALID


def target_bin_count(n: int) -> int:
    for limit, count in BIN_COUNT_STEPS:
        if n <= limit:
            return count
    return MAX_BIN_COUNT


def range_label(lower: float, upper: float, unit: str) -> str:
    return f"{int(lower)}-{int(upper)} {unit}"


def _is_binary_domain(values: np.ndarray) -> bool:
    return bool(np.all((values == 0.0) | (values == 1.0)))


def _binary_bins(x: np.ndarray, y: np.ndarray) -> List[Bin]:
    bins = []
    done = x >= BINARY_THRESHOLD
    for label, mask, lo, hi in (
        (LABEL_NOT_COMPLETED, ~done, 0.0, BINARY_THRESHOLD),
        (LABEL_COMPLETED, done, BINARY_THRESHOLD, 1.0),
    ):
        count = int(mask.sum())
        if count:
            bins.append(Bin(label, lo, hi, float(y[mask].mean()), count))
    return bins


def _range_bins(x: np.ndarray, y: np.ndarray, unit: str) -> List[Bin]:
    order = np.argsort(x, kind="stable")
    x, y = x[order], y[order]
    lo, hi = float(x[0]), float(x[-1])
    if lo == hi:
        return [Bin(range_label(lo, hi, unit), lo, hi, float(y.mean()), len(x))]

    count = target_bin_count(len(x))
    width = (hi - lo) / count
    uppers = np.array([lo + width * (i + 1) for i in range(count)])
    uppers[-1] = hi
    lowers = np.concatenate([[lo], uppers[:-1]])

    # First bin whose inclusive upper bound reaches the value
    idx = np.minimum(np.searchsorted(uppers, x, side="left"), count - 1)

    bins = []
    for i in range(count):
        mask = idx == i
        n_in = int(mask.sum())
        if not n_in:
            continue
        bins.append(Bin(
            range_label(lowers[i], uppers[i], unit),
            float(lowers[i]),
            float(uppers[i]),
            float(y[mask].mean()),
            n_in,
        ))
    return bins


def analyze_bins(
    pairs: Sequence[Tuple[float, float]],
    predictor_id: str,
    dependent_id: str = "",
    binary: Optional[bool] = None,
    unit: str = UNIT_MINUTES,
    baseline: Optional[float] = None,
) -> BinAnalysisResult:
    """Bucket (predictor, dependent) pairs.

    binary=None detects a {0, 1} predictor domain. baseline defaults to the
    mean dependent value over all pairs. Pairs with a non-finite value are
    dropped before counting.
    """
    arr = np.asarray(pairs, dtype=np.float64).reshape(-1, 2)
    finite = np.isfinite(arr).all(axis=1)
    if not finite.all():
        log.debug("   %s: dropped %d non-finite pairs", predictor_id, int((~finite).sum()))
        arr = arr[finite]
    x, y = arr[:, 0], arr[:, 1]
    n = len(arr)
    if baseline is None:
        baseline = float(y.mean()) if n else 0.0

    if n < MIN_BIN_PAIRS:
        log.debug("   %s: %d pairs, need %d for bins", predictor_id, n, MIN_BIN_PAIRS)
        return BinAnalysisResult(
            predictor_id=predictor_id,
            dependent_id=dependent_id,
            bins=(),
            total_samples=n,
            baseline=float(baseline),
            status=InsufficientData(current=n, required=MIN_BIN_PAIRS),
        )

    if binary is None:
        binary = _is_binary_domain(x)

    bins = _binary_bins(x, y) if binary else _range_bins(x, y, unit)
    return BinAnalysisResult(
        predictor_id=predictor_id,
        dependent_id=dependent_id,
        bins=tuple(bins),
        total_samples=n,
        baseline=float(baseline),
    )


def analyze_habit_completion(
    habit_pairs: Mapping[str, Sequence[Tuple[float, float]]],
    baseline: float,
    dependent_id: str = "",
) -> Optional[BinAnalysisResult]:
    """Combined overview with one bin per habit, averaged over completed days.

    Habits with fewer than MIN_BIN_PAIRS days or no completions are skipped;
    returns None when no habit qualifies.
    """
    bins: List[Bin] = []
    for name, pairs in habit_pairs.items():
        if len(pairs) < MIN_BIN_PAIRS:
            continue
        completed = [d for v, d in pairs if v >= BINARY_THRESHOLD]
        if not completed:
            continue
        bins.append(Bin(name, 0.0, 1.0, float(np.mean(completed)), len(completed)))

    if not bins:
        return None
    return BinAnalysisResult(
        predictor_id=HABITS_OVERVIEW_ID,
        dependent_id=dependent_id,
        bins=tuple(bins),
        total_samples=sum(b.sample_count for b in bins),
        baseline=float(baseline),
    )

