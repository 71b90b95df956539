"""Predictor alignment, admission and min-max scaling for the regression layer."""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from analytics.records import Observation, PredictorSpec
from constants import MIN_NONZERO_VALUES

log = logging.getLogger("analytics.alignment")

REASON_LENGTH = "length_mismatch"
REASON_SPARSE = "too_few_nonzero"


def align_predictor(observations: Sequence[Observation], predictor_id: str) -> List[Optional[float]]:
    """Predictor values in the observations' date order (None = not logged)."""
    return [obs.predictors.get(predictor_id) for obs in observations]


def regression_vector(aligned: Sequence[Optional[float]]) -> np.ndarray:
    """Not-logged days (None, NaN, ±inf) count as zero activity."""
    return np.array(
        [float(v) if v is not None and math.isfinite(v) else 0.0 for v in aligned],
        dtype=np.float64,
    )


def non_zero_count(values: Sequence[Optional[float]]) -> int:
    return sum(1 for v in values if v is not None and math.isfinite(v) and v != 0)


def is_admissible(values: Sequence[Optional[float]], n: int) -> bool:
    return len(values) == n and non_zero_count(values) >= MIN_NONZERO_VALUES


def min_max_scale(values: Sequence[float]) -> np.ndarray:
    """Map to [0, 1]; a constant vector comes back unchanged."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return arr.copy()
    lo, hi = float(arr.min()), float(arr.max())
    if hi == lo:
        return arr.copy()
    return (arr - lo) / (hi - lo)


def build_design_columns(
    observations: Sequence[Observation],
    specs: Sequence[PredictorSpec],
    extra_columns: Optional[Mapping[str, Sequence[float]]] = None,
) -> Tuple[Dict[str, np.ndarray], Dict[str, str]]:
    """Scaled regression columns for every admissible predictor.

    Returns (admitted, rejected): admitted maps predictor id → scaled vector
    in predictor order (extra columns last); rejected maps predictor id → reason.
    """
    n = len(observations)
    admitted: Dict[str, np.ndarray] = {}
    rejected: Dict[str, str] = {}

    candidates: List[Tuple[str, Sequence[float]]] = [
        (spec.predictor_id, regression_vector(align_predictor(observations, spec.predictor_id)))
        for spec in specs
    ]
    for pid, values in (extra_columns or {}).items():
        if any(pid == c[0] for c in candidates):
            log.warning("   Extra column %r shadows a built-in predictor; ignored", pid)
            continue
        candidates.append((pid, regression_vector(values)))

    for pid, values in candidates:
        if len(values) != n:
            rejected[pid] = REASON_LENGTH
            log.debug("   %s excluded: length %d != %d", pid, len(values), n)
            continue
        if not is_admissible(values, n):
            rejected[pid] = REASON_SPARSE
            log.debug("   %s excluded: %d non-zero values (need %d)",
                      pid, non_zero_count(values), MIN_NONZERO_VALUES)
            continue
        admitted[pid] = min_max_scale(values)

    return admitted, rejected
