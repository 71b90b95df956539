"""
Sleep Correlation Engine
========================
Explains nightly sleep outcomes with daily behaviors and health signals.

Architecture (4 layers):
  Layer 0 — Windowing:  keep the last N days (15/30/45/60/90), discover
            candidate predictors (health metrics, workout types, habits),
            build one observation set per sleep outcome.
  Layer 1 — Alignment:  one aligned vector per predictor, not-logged days
            as zero, admission (≥7 non-zero values), min-max scaling.
  Layer 2 — Regression: one multivariate OLS per outcome with standard
            errors, t-statistics, p-values and 95% CIs.
  Layer 2b — Bins:      raw-unit bucket breakdowns per predictor, pairwise
            summaries and the combined habits overview.
  Layer 3 — Ranking:    filter p < 0.99, group by outcome (top 3 headline),
            global top list, plain-text digest.

Rules carried over from the app's analysis screen:
  • A regression run needs ≥30 nights with a valid outcome value; below
    that the caller gets baseline progress (current/30) instead.
  • Outcome validity: score/HRV/heart rate/sleep stages must be > 0,
    awake time may be 0. Durations are reported in hours.
  • Singular normal equations degrade that outcome only.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Any, Collection, Dict, List, Mapping, Optional, Sequence

import numpy as np

import config
from analytics.alignment import (
    align_predictor,
    build_design_columns,
    min_max_scale,
    non_zero_count,
    regression_vector,
)
from analytics.binning import InsufficientData, analyze_bins, analyze_habit_completion
from analytics.insights import build_insights, filter_visible, group_insights, top_insights
from analytics.matrix_ops import SingularMatrixError
from analytics.pairwise import summarize_pairs
from analytics.records import (
    KIND_HEALTH,
    DailyRecord,
    Observation,
    PredictorSpec,
    build_observations,
    filter_window,
    observation_frame,
    predictor_specs,
)
from analytics.regression import PVALUE_METHODS, DegreesOfFreedomError, fit_regression
from constants import (
    DEPENDENT_METRICS,
    MIN_REGRESSION_DAYS,
    UNIT_MINUTES,
    get_dependent_metric,
)
from pipeline.summary_builder import build_insight_digest

log = logging.getLogger("correlation_engine")


# ═══════════════════════════════════════════════════════════════════
#  ENGINE
# ═══════════════════════════════════════════════════════════════════

class SleepCorrelationEngine:
    """
    Orchestrates all layers of the sleep correlation analysis.
    Stateless: every call recomputes from the records it is given.
    """

    def __init__(
        self,
        window_days: Optional[int] = None,
        pvalue_method: Optional[str] = None,
        max_workers: Optional[int] = None,
        top_limit: Optional[int] = None,
    ):
        self.window_days = window_days if window_days is not None else config.ANALYSIS_WINDOW_DAYS
        self.pvalue_method = pvalue_method if pvalue_method is not None else config.PVALUE_METHOD
        self.max_workers = max_workers if max_workers is not None else config.MAX_WORKERS
        self.top_limit = top_limit if top_limit is not None else config.TOP_INSIGHTS
        if self.pvalue_method not in PVALUE_METHODS:
            raise ValueError(f"pvalue_method must be one of {PVALUE_METHODS}, got {self.pvalue_method!r}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.top_limit < 1:
            raise ValueError(f"top_limit must be at least 1, got {self.top_limit}")

    # ─── MAIN ENTRY ───────────────────────────────────────────────

    def analyze(
        self,
        records: Sequence[DailyRecord],
        reference_day: Optional[date] = None,
        metrics: Optional[Sequence[str]] = None,
        extra_columns: Optional[Mapping[str, Mapping[str, Sequence[float]]]] = None,
        visible: Optional[Collection[str]] = None,
    ) -> Dict[str, Any]:
        """
        Run layers 0-3 and return ranked insights plus analysis_status metadata.

        Parameters
        ----------
        records : sequence of DailyRecord
            Day-level inputs; never modified.
        reference_day : date, optional
            Last day of the analysis window (defaults to the latest record).
        metrics : sequence of str, optional
            Outcome keys to analyze (defaults to the full catalog).
        extra_columns : {metric_key: {predictor_id: vector}}, optional
            Pre-aligned predictor vectors for a given outcome. Vectors whose
            length differs from that outcome's observations are excluded.
        visible : collection of str, optional
            Predictor ids to keep in the ranked output.
        """
        metric_keys = [m.key for m in DEPENDENT_METRICS] if metrics is None else list(metrics)
        for key in metric_keys:
            get_dependent_metric(key)

        result: Dict[str, Any] = {
            "summary": "",
            "analysis_status": "success",
            "degraded_reasons": [],
            "baseline_progress": None,
            "n_days": 0,
            "insights": [],
            "groups": [],
            "regressions": {},
            "bin_analyses": {},
            "summaries": {},
            "habit_overview": {},
            "skipped_metrics": {},
        }

        windowed, specs, observations = self._layer0_window(records, reference_day, metric_keys)
        result["n_days"] = len(windowed)

        counts = {k: len(observations[k]) for k in metric_keys}
        eligible = [k for k in metric_keys if counts[k] >= MIN_REGRESSION_DAYS]
        for k in metric_keys:
            if k not in eligible:
                result["skipped_metrics"][k] = InsufficientData(counts[k], MIN_REGRESSION_DAYS)

        if not eligible:
            best = max(counts.values(), default=0)
            progress = InsufficientData(best, MIN_REGRESSION_DAYS)
            log.info("   Baseline in progress: %d/%d nights", progress.current, progress.required)
            result["baseline_progress"] = progress
            result["analysis_status"] = "degraded"
            result["degraded_reasons"] = ["insufficient_observations"]
            result["summary"] = build_insight_digest([], baseline_progress=progress)
            return result

        try:
            extra_columns = extra_columns or {}
            per_metric = self._fan_out(
                lambda k: self._analyze_observations(k, observations[k], specs, extra_columns.get(k)),
                eligible,
            )
            all_insights = []
            for outcome in per_metric:
                key = outcome["metric"]
                result["regressions"][key] = outcome["regression"]
                result["bin_analyses"][key] = outcome["bin_analyses"]
                result["summaries"][key] = outcome["summaries"]
                if outcome["habit_overview"] is not None:
                    result["habit_overview"][key] = outcome["habit_overview"]
                if outcome["reason"]:
                    result["analysis_status"] = "degraded"
                    result["degraded_reasons"].append(f"{outcome['reason']}:{key}")
                all_insights.extend(outcome["insights"])

            groups, ranked = self._layer3_rank(filter_visible(all_insights, visible))
        except Exception as e:
            log.exception("Core correlation layers failed: %s", e)
            result["summary"] = f"Correlation analysis failed: {e}"
            result["analysis_status"] = "failed"
            result["degraded_reasons"] = ["core_layer_failure"]
            return result

        summary = build_insight_digest(groups)
        if result["degraded_reasons"]:
            summary = (
                f"{summary}\n\n[ANALYSIS STATUS]\n"
                f"  status={result['analysis_status']}\n"
                f"  reasons={', '.join(result['degraded_reasons'])}"
            )

        result["insights"] = ranked
        result["groups"] = groups
        result["summary"] = summary

        n_models = sum(1 for r in result["regressions"].values() if r)
        n_bins = sum(len(b) for b in result["bin_analyses"].values())
        log.info(
            "\n   COMPUTATION DIGEST (%s, %d days, window %d)\n"
            "   Layer 0 Window          : %d predictors, %d/%d outcomes eligible\n"
            "   Layer 2 Regression      : %d models\n"
            "   Layer 2b Bins           : %d breakdowns\n"
            "   Layer 3 Ranking         : %d groups, %d ranked insights\n"
            "   Status                  : %s",
            f"{windowed[0].day} -> {windowed[-1].day}",
            len(windowed),
            self.window_days,
            len(specs),
            len(eligible),
            len(metric_keys),
            n_models,
            n_bins,
            len(groups),
            len(ranked),
            result["analysis_status"],
        )
        return result

    def analyze_metric(
        self,
        records: Sequence[DailyRecord],
        metric_key: str,
        reference_day: Optional[date] = None,
        extra_columns: Optional[Mapping[str, Sequence[float]]] = None,
    ) -> Dict[str, Any]:
        """Layers 0-2b for a single outcome; returns the per-outcome dict."""
        get_dependent_metric(metric_key)
        _, specs, observations = self._layer0_window(records, reference_day, [metric_key])
        obs = observations[metric_key]
        if len(obs) < MIN_REGRESSION_DAYS:
            outcome = self._empty_outcome(metric_key, len(obs))
            outcome["baseline_progress"] = InsufficientData(len(obs), MIN_REGRESSION_DAYS)
            return outcome
        return self._analyze_observations(metric_key, obs, specs, extra_columns)

    # ─── Layers ───────────────────────────────────────────────────

    def _layer0_window(self, records, reference_day, metric_keys):
        log.info("   Layer 0: windowing %d records (%d days)…", len(records), self.window_days)
        windowed = filter_window(records, self.window_days, reference_day)
        specs = predictor_specs(windowed)
        observations = {k: build_observations(windowed, k, specs) for k in metric_keys}
        log.info(
            "   %d days in window, %d candidate predictors", len(windowed), len(specs)
        )
        return windowed, specs, observations

    def _fan_out(self, fn, keys: List[str]) -> List[Dict[str, Any]]:
        if self.max_workers <= 1 or len(keys) <= 1:
            return [fn(k) for k in keys]
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(keys))) as pool:
            return list(pool.map(fn, keys))

    @staticmethod
    def _empty_outcome(metric_key: str, n: int) -> Dict[str, Any]:
        return {
            "metric": metric_key,
            "n_observations": n,
            "admitted": [],
            "rejected": {},
            "regression": [],
            "insights": [],
            "bin_analyses": {},
            "summaries": [],
            "habit_overview": None,
            "baseline_progress": None,
            "coverage": {},
            "reason": None,
        }

    def _analyze_observations(
        self,
        metric_key: str,
        observations: Sequence[Observation],
        specs: Sequence[PredictorSpec],
        extra_columns: Optional[Mapping[str, Sequence[float]]] = None,
    ) -> Dict[str, Any]:
        metric = get_dependent_metric(metric_key)
        outcome = self._empty_outcome(metric_key, len(observations))

        y_raw = np.array([o.dependent_value for o in observations], dtype=np.float64)
        baseline = float(y_raw.mean())

        frame = observation_frame(observations)
        coverage = frame.drop(columns="dependent").notna().sum()
        outcome["coverage"] = {pid: int(n) for pid, n in coverage.items()}
        log.debug("   %s coverage: %s", metric.display_name, outcome["coverage"])

        # Layer 1
        log.info("   Layer 1: aligning predictors for %s…", metric.display_name)
        admitted, rejected = build_design_columns(observations, specs, extra_columns)
        outcome["admitted"] = list(admitted)
        outcome["rejected"] = rejected
        log.info("   ✓ %d admitted, %d excluded", len(admitted), len(rejected))

        raw_vectors: Dict[str, np.ndarray] = {
            s.predictor_id: regression_vector(align_predictor(observations, s.predictor_id))
            for s in specs
        }
        for pid in admitted:
            if pid not in raw_vectors:
                raw_vectors[pid] = regression_vector(extra_columns[pid])

        # Layer 2
        regression = []
        if admitted:
            log.info("   Layer 2: OLS %s ~ %d predictors…", metric.display_name, len(admitted))
            try:
                regression = fit_regression(
                    min_max_scale(y_raw),
                    list(admitted.values()),
                    names=list(admitted),
                    pvalue_method=self.pvalue_method,
                )
            except SingularMatrixError as e:
                log.warning("   %s: singular normal equations (%s)", metric.display_name, e)
                outcome["reason"] = "singular_matrix"
            except DegreesOfFreedomError as e:
                log.warning("   %s: %s", metric.display_name, e)
                outcome["reason"] = "insufficient_degrees_of_freedom"
        else:
            log.info("   %s: no admissible predictors", metric.display_name)
            outcome["reason"] = "no_admissible_predictors"
        outcome["regression"] = regression

        # Layer 2b
        log.info("   Layer 2b: bins + pairwise summaries for %s…", metric.display_name)
        spec_by_id = {s.predictor_id: s for s in specs}
        bin_analyses = {}
        summaries = []
        habit_pairs = {}
        for pid, raw in raw_vectors.items():
            if not np.any(raw != 0):
                continue
            spec = spec_by_id.get(pid)
            pairs = list(zip(raw.tolist(), y_raw.tolist()))
            bins = analyze_bins(
                pairs,
                predictor_id=pid,
                dependent_id=metric_key,
                binary=spec.is_binary if spec else None,
                unit=spec.unit if spec else UNIT_MINUTES,
                baseline=baseline,
            )
            bin_analyses[pid] = bins
            summaries.append(summarize_pairs(
                pairs,
                pid,
                metric_key,
                bins,
                continuous=spec is not None and spec.kind == KIND_HEALTH,
                lower_is_better=metric.lower_is_better,
            ))
            if spec is not None and spec.is_binary:
                habit_pairs[pid] = pairs

        outcome["bin_analyses"] = bin_analyses
        outcome["summaries"] = summaries
        outcome["habit_overview"] = analyze_habit_completion(habit_pairs, baseline, metric_key)

        sample_sizes = {pid: non_zero_count(raw_vectors[pid]) for pid in admitted}
        outcome["insights"] = build_insights(metric_key, regression, bin_analyses, sample_sizes)
        log.info("   ✓ %s: %d insights, %d breakdowns",
                 metric.display_name, len(outcome["insights"]), len(bin_analyses))
        return outcome

    def _layer3_rank(self, insights):
        log.info("   Layer 3: ranking %d insights…", len(insights))
        groups = group_insights(insights)
        ranked = top_insights(insights, self.top_limit)
        log.info("   ✓ %d groups, %d in global list", len(groups), len(ranked))
        return groups, ranked
