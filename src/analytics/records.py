"""Flat day-level records and per-outcome observation building."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Mapping, Optional, Sequence

import pandas as pd

from constants import (
    HEALTH_METRIC_UNITS,
    HEALTH_METRICS,
    TIME_WINDOWS,
    UNIT_COMPLETED,
    UNIT_MINUTES,
    get_dependent_metric,
)

log = logging.getLogger("analytics.records")

KIND_HEALTH = "health"
KIND_WORKOUT = "workout"
KIND_HABIT = "habit"


@dataclass(frozen=True)
class DailyRecord:
    """One calendar day as supplied by the data collaborator.

    outcomes  – raw nightly values keyed by dependent metric key
                (durations in seconds), None when not recorded
    health    – continuous metric name → value, None when not logged
    workouts  – workout type → summed minutes for the day
    habits    – habit name → completed flag
    """

    day: date
    outcomes: Mapping[str, Optional[float]] = field(default_factory=dict)
    health: Mapping[str, Optional[float]] = field(default_factory=dict)
    workouts: Mapping[str, float] = field(default_factory=dict)
    habits: Mapping[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class Observation:
    date: date
    dependent_value: float
    predictors: Mapping[str, Optional[float]]


@dataclass(frozen=True)
class PredictorSpec:
    predictor_id: str
    kind: str
    unit: str = UNIT_MINUTES

    @property
    def is_binary(self) -> bool:
        return self.kind == KIND_HABIT


def dependent_value(record: DailyRecord, metric_key: str) -> Optional[float]:
    """Converted outcome value, or None when the raw value is unusable."""
    return get_dependent_metric(metric_key).convert(record.outcomes.get(metric_key))


def filter_window(
    records: Sequence[DailyRecord],
    window_days: int,
    reference_day: Optional[date] = None,
) -> List[DailyRecord]:
    """Records inside [reference_day − window_days, reference_day], sorted by day.

    reference_day defaults to the latest record's day.
    """
    if window_days not in TIME_WINDOWS:
        raise ValueError(f"Unsupported window {window_days}; expected one of {TIME_WINDOWS}")
    if not records:
        return []
    ordered = sorted(records, key=lambda r: r.day)
    end = reference_day or ordered[-1].day
    start = end - timedelta(days=window_days)
    return [r for r in ordered if start <= r.day <= end]


def predictor_specs(records: Sequence[DailyRecord]) -> List[PredictorSpec]:
    """Candidate predictors: health metrics, then workout types, then habits."""
    workout_types = sorted({w for r in records for w in r.workouts})
    habit_names = sorted({h for r in records for h in r.habits})
    specs = [PredictorSpec(m, KIND_HEALTH, HEALTH_METRIC_UNITS[m]) for m in HEALTH_METRICS]
    specs += [PredictorSpec(w, KIND_WORKOUT, UNIT_MINUTES) for w in workout_types]
    specs += [PredictorSpec(h, KIND_HABIT, UNIT_COMPLETED) for h in habit_names]
    return specs


def _logged_value(raw) -> Optional[float]:
    """None for not logged; NaN and infinities count as not logged too."""
    if raw is None:
        return None
    value = float(raw)
    return value if math.isfinite(value) else None


def _predictor_values(record: DailyRecord, specs: Sequence[PredictorSpec]) -> Dict[str, Optional[float]]:
    values: Dict[str, Optional[float]] = {}
    for spec in specs:
        if spec.kind == KIND_HEALTH:
            raw = record.health.get(spec.predictor_id)
            values[spec.predictor_id] = _logged_value(raw)
        elif spec.kind == KIND_WORKOUT:
            raw = record.workouts.get(spec.predictor_id)
            values[spec.predictor_id] = _logged_value(raw)
        else:
            done = record.habits.get(spec.predictor_id)
            values[spec.predictor_id] = None if done is None else (1.0 if done else 0.0)
    return values


def build_observations(
    records: Sequence[DailyRecord],
    metric_key: str,
    specs: Optional[Sequence[PredictorSpec]] = None,
) -> List[Observation]:
    """One Observation per day with a valid outcome, in date order."""
    if specs is None:
        specs = predictor_specs(records)
    observations = []
    skipped = 0
    for record in sorted(records, key=lambda r: r.day):
        value = dependent_value(record, metric_key)
        if value is None:
            skipped += 1
            continue
        observations.append(Observation(record.day, value, _predictor_values(record, specs)))
    if skipped:
        log.debug("   %s: skipped %d days without a valid value", metric_key, skipped)
    return observations


def observation_frame(observations: Sequence[Observation]) -> pd.DataFrame:
    """Date-indexed frame: `dependent` plus one column per predictor (NaN = not logged)."""
    rows = []
    for obs in observations:
        row = {"date": obs.date, "dependent": obs.dependent_value}
        row.update({k: (float("nan") if v is None else v) for k, v in obs.predictors.items()})
        rows.append(row)
    if not rows:
        return pd.DataFrame(columns=["dependent"]).rename_axis("date")
    return pd.DataFrame(rows).set_index("date").sort_index()
