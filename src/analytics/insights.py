"""Insight assembly, confidence tiers, ranking and grouping."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Collection, Dict, List, Mapping, Optional, Sequence, Tuple

from analytics.binning import BinAnalysisResult
from analytics.regression import RegressionResult
from constants import CONFIDENCE_TIERS, HEADLINE_SIZE, MAX_PVALUE, TOP_INSIGHTS_LIMIT


class ConfidenceLevel(str, Enum):
    STRONG = "Strong"
    MODERATE = "Moderate"
    WEAK = "Weak"
    UNCERTAIN = "Uncertain"

    @classmethod
    def from_p_value(cls, p_value: float) -> "ConfidenceLevel":
        for bound, label in CONFIDENCE_TIERS:
            if p_value < bound:
                return cls(label)
        return cls.UNCERTAIN


@dataclass(frozen=True)
class Insight:
    predictor_id: str
    dependent_id: str
    coefficient: float
    absolute_impact_pct: float
    p_value: float
    confidence_interval: Tuple[float, float]
    confidence_level: ConfidenceLevel
    sample_size: int
    bin_analysis: Optional[BinAnalysisResult] = None

    @property
    def impact_description(self) -> str:
        return f"{self.absolute_impact_pct:.1f}%"


@dataclass(frozen=True)
class InsightGroup:
    dependent_id: str
    headline: Tuple[Insight, ...]
    additional: Tuple[Insight, ...]

    @property
    def all_insights(self) -> Tuple[Insight, ...]:
        return self.headline + self.additional

    @property
    def best_p_value(self) -> float:
        return self.headline[0].p_value if self.headline else math.inf


def is_reportable(p_value: float) -> bool:
    return p_value is not None and math.isfinite(p_value) and p_value < MAX_PVALUE


def build_insights(
    dependent_id: str,
    regression_results: Sequence[RegressionResult],
    bin_analyses: Optional[Mapping[str, BinAnalysisResult]] = None,
    sample_sizes: Optional[Mapping[str, int]] = None,
) -> List[Insight]:
    """One Insight per non-intercept coefficient, in model order."""
    bin_analyses = bin_analyses or {}
    sample_sizes = sample_sizes or {}
    insights = []
    for res in regression_results:
        if res.is_intercept:
            continue
        insights.append(Insight(
            predictor_id=res.predictor_id,
            dependent_id=dependent_id,
            coefficient=res.coefficient,
            absolute_impact_pct=res.coefficient * 100,
            p_value=res.p_value,
            confidence_interval=res.confidence_interval,
            confidence_level=ConfidenceLevel.from_p_value(res.p_value),
            sample_size=sample_sizes.get(res.predictor_id, 0),
            bin_analysis=bin_analyses.get(res.predictor_id),
        ))
    return insights


def _ranked(insights: Sequence[Insight]) -> List[Insight]:
    return sorted((i for i in insights if is_reportable(i.p_value)), key=lambda i: i.p_value)


def group_insights(insights: Sequence[Insight], headline_size: int = HEADLINE_SIZE) -> List[InsightGroup]:
    """Reportable insights grouped by outcome, groups ordered by their best p-value."""
    by_dependent: Dict[str, List[Insight]] = {}
    for ins in _ranked(insights):
        by_dependent.setdefault(ins.dependent_id, []).append(ins)

    groups = [
        InsightGroup(dep, tuple(ranked[:headline_size]), tuple(ranked[headline_size:]))
        for dep, ranked in by_dependent.items()
    ]
    groups.sort(key=lambda g: g.best_p_value)
    return groups


def top_insights(insights: Sequence[Insight], limit: int = TOP_INSIGHTS_LIMIT) -> List[Insight]:
    return _ranked(insights)[:limit]


def filter_visible(insights: Sequence[Insight], visible: Optional[Collection[str]]) -> List[Insight]:
    """Keep insights whose predictor is in `visible`; None keeps everything."""
    if visible is None:
        return list(insights)
    return [i for i in insights if i.predictor_id in visible]
