"""Trend and churn heuristics over the aggregated report sections."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

INCREASING = "increasing"
STABLE = "stable"
DECREASING = "decreasing"

# (upper bound on overall engagement %, predicted churn %, risk factor)
CHURN_BANDS = (
    (20.0, 25, "Low overall engagement rate"),
    (40.0, 15, "Below average engagement rate"),
)
BASELINE_CHURN = 5


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def engagement_trend(cohort_rates: List[float]) -> str:
    """Compare the last three cohorts against the three before them."""
    if len(cohort_rates) < 3:
        return STABLE
    recent = _mean(cohort_rates[-3:])
    older = _mean(cohort_rates[-6:-3]) or recent
    if recent > older * 1.1:
        return INCREASING
    if recent < older * 0.9:
        return DECREASING
    return STABLE


def generate_predictions(
    engagement: Mapping[str, Any],
    cohorts: Mapping[str, Any],
) -> Dict[str, Any]:
    risk_factors: List[str] = []

    rates = [float(c["engagement_rate"]) for c in cohorts.get("cohorts", [])]
    trend = engagement_trend(rates)
    if trend == DECREASING:
        risk_factors.append("Declining engagement across recent cohorts")

    metrics = engagement.get("engagement_metrics", {})
    total = engagement.get("total_emails", 0)
    interactions = metrics.get("opens", 0) + metrics.get("clicks", 0)
    overall = (interactions / total) * 100.0 if total > 0 else 0.0

    predicted = BASELINE_CHURN
    for bound, churn, factor in CHURN_BANDS:
        if overall < bound:
            predicted = churn
            risk_factors.append(factor)
            break

    return {
        "engagement_trend": trend,
        "overall_engagement_rate": overall,
        "predicted_churn": predicted,
        "risk_factors": risk_factors,
    }
