"""
Shared constants used across multiple modules.
Single source of truth for the sleep outcome catalog and statistical thresholds.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

# Regression needs this many nights with a valid outcome value
MIN_REGRESSION_DAYS = 30

# A predictor must be non-zero on at least this many days to be admitted
MIN_NONZERO_VALUES = 7

# Bucket breakdowns need this many (predictor, outcome) pairs
MIN_BIN_PAIRS = 7

# Pivots smaller than this make the normal-equation matrix singular
PIVOT_TOLERANCE = 1e-10

# 95% confidence interval multiplier (normal approximation)
CI_Z_SCORE = 1.96

# Ranking
MAX_PVALUE = 0.99
HEADLINE_SIZE = 3
TOP_INSIGHTS_LIMIT = 20

# Confidence tiers: (upper p-value bound, label)
CONFIDENCE_TIERS = [
    (0.01, "Strong"),
    (0.05, "Moderate"),
    (0.10, "Weak"),
]

# Supported analysis windows in days
TIME_WINDOWS = (15, 30, 45, 60, 90)
DEFAULT_WINDOW_DAYS = 90

INTERCEPT_ID = "intercept"
SECONDS_PER_HOUR = 3600.0

# Continuous health predictors in catalog order
HEALTH_METRICS = ("Exercise Time", "Steps", "Time in Daylight")

# Bucket label units
UNIT_MINUTES = "min"
UNIT_STEPS = "steps"
UNIT_COMPLETED = "completed"

HEALTH_METRIC_UNITS = {
    "Exercise Time": UNIT_MINUTES,
    "Steps": UNIT_STEPS,
    "Time in Daylight": UNIT_MINUTES,
}

HABITS_OVERVIEW_ID = "Manually Tracked Habits"

# Pairwise significance (continuous predictors use Pearson, event predictors
# use the mean difference between active and inactive days)
PEARSON_P_THRESHOLD = 0.05
PEARSON_MIN_ABS_R = 0.3
MEAN_DIFF_THRESHOLD = 5.0


@dataclass(frozen=True)
class DependentMetric:
    """One nightly sleep outcome and the rule that makes a raw value usable."""

    key: str
    display_name: str
    allow_zero: bool = False
    divisor: float = 1.0
    lower_is_better: bool = False

    def convert(self, raw: Optional[float]) -> Optional[float]:
        if raw is None:
            return None
        try:
            value = float(raw)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(value):
            return None
        if value < 0 or (value == 0 and not self.allow_zero):
            return None
        return value / self.divisor


DEPENDENT_METRICS: Tuple[DependentMetric, ...] = (
    DependentMetric("sleep_score", "Sleep Score"),
    DependentMetric("sleep_duration", "Sleep Duration", divisor=SECONDS_PER_HOUR),
    DependentMetric("total_awake_time", "Total Awake Time", allow_zero=True,
                    divisor=SECONDS_PER_HOUR, lower_is_better=True),
    DependentMetric("hrv", "HRV"),
    DependentMetric("heart_rate", "Heart Rate", lower_is_better=True),
    DependentMetric("deep_sleep", "Deep Sleep", divisor=SECONDS_PER_HOUR),
    DependentMetric("rem_sleep", "REM Sleep", divisor=SECONDS_PER_HOUR),
)

DEPENDENT_METRICS_BY_KEY: Dict[str, DependentMetric] = {m.key: m for m in DEPENDENT_METRICS}


def get_dependent_metric(key: str) -> DependentMetric:
    try:
        return DEPENDENT_METRICS_BY_KEY[key]
    except KeyError:
        raise ValueError(f"Unknown dependent metric: {key!r}") from None
