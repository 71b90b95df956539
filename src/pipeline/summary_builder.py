"""Helpers for building concise insight text for UI consumption and logs."""

from __future__ import annotations

from typing import Optional, Sequence

from constants import DEPENDENT_METRICS_BY_KEY


def clip(s: str, limit: int = 260) -> str:
    s = s.replace("\n", " ").strip()
    if len(s) <= limit:
        return s
    return s[: limit - 3].rstrip() + "..."


def _display_name(dependent_id: str) -> str:
    metric = DEPENDENT_METRICS_BY_KEY.get(dependent_id)
    return metric.display_name if metric else dependent_id


def format_insight_line(insight) -> str:
    """One bullet: predictor, impact, confidence tier, p-value and sample size."""
    return clip(
        f"- {insight.predictor_id}: {insight.impact_description} "
        f"({insight.confidence_level.value}, p={insight.p_value:.3f}, n={insight.sample_size})"
    )


def build_insight_digest(groups: Sequence, baseline_progress: Optional[object] = None) -> str:
    """Plain-text digest: one block per outcome with its headline insights."""
    if baseline_progress is not None:
        return (
            "Building your sleep baseline: "
            f"{baseline_progress.current}/{baseline_progress.required} nights with sleep data.\n"
            "Correlations unlock once enough nights have been recorded."
        )
    if not groups:
        return "No reportable correlations in this window."

    blocks = []
    for group in groups:
        lines = [f"{_display_name(group.dependent_id)}:"]
        lines.extend(format_insight_line(i) for i in group.headline)
        if group.additional:
            lines.append(f"  (+{len(group.additional)} more)")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)
