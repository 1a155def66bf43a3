"""Actionable recommendations from segment shares and send-time patterns."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping

Recommendation = Dict[str, Any]


@dataclass(frozen=True)
class _SegmentRule:
    segment: str
    label: str
    priority: str
    title: str
    applies: Callable[[float], bool]
    describe: Callable[[float], str]
    actions: tuple[str, ...]


SEGMENT_RULES = (
    _SegmentRule(
        segment="champions",
        label="Champions",
        priority="high",
        title="Grow Champion Segment",
        applies=lambda pct: pct < 10,
        describe=lambda pct: f"Only {pct:.1f}% of subscribers are highly engaged",
        actions=(
            "Create exclusive content for top performers",
            "Implement referral programs",
            "Offer early access to new features/products",
            "Send personalized thank you messages",
        ),
    ),
    _SegmentRule(
        segment="needsAttention",
        label="Needs Attention",
        priority="high",
        title="Re-engage Declining Subscribers",
        applies=lambda pct: pct > 20,
        describe=lambda pct: f"{pct:.1f}% of subscribers need attention",
        actions=(
            "Create win-back email campaign",
            "Survey for content preferences",
            "Reduce email frequency temporarily",
            "Offer special incentives or content",
        ),
    ),
    _SegmentRule(
        segment="hibernating",
        label="Hibernating",
        priority="medium",
        title="Address Inactive Subscribers",
        applies=lambda pct: pct > 30,
        describe=lambda pct: f"{pct:.1f}% of subscribers are inactive",
        actions=(
            "Implement sunset policy (remove after 6 months)",
            "Send reactivation campaign",
            "Update email preferences",
            "Consider list hygiene cleanup",
        ),
    ),
)


def peak_open_hour(hourly_pattern: List[Mapping[str, Any]]) -> int:
    """Hour with the most opens; the earliest hour wins ties."""
    if not hourly_pattern:
        return 0
    best = max(hourly_pattern, key=lambda slot: slot.get("opens", 0))
    return int(best.get("hour", 0))


def _send_time_recommendation(engagement: Mapping[str, Any]) -> Recommendation:
    hourly = engagement.get("time_analysis", {}).get("hourly_pattern", [])
    hour = peak_open_hour(hourly)
    return {
        "priority": "low",
        "segment": "All",
        "title": "Optimize Send Times",
        "description": f"Peak engagement occurs at {hour}:00 UTC",
        "actions": [
            f"Schedule important emails around {hour}:00 UTC",
            "A/B test different send times",
            "Consider subscriber timezone preferences",
            "Monitor engagement patterns monthly",
        ],
    }


def generate_recommendations(
    engagement: Mapping[str, Any],
    segments: Mapping[str, Any],
) -> List[Recommendation]:
    """Return recommendations in rule order; the send-time one is always last."""
    stats = segments.get("segments", {})
    out: List[Recommendation] = []
    for rule in SEGMENT_RULES:
        pct = float(stats.get(rule.segment, {}).get("percentage", 0.0))
        if rule.applies(pct):
            out.append({
                "priority": rule.priority,
                "segment": rule.label,
                "title": rule.title,
                "description": rule.describe(pct),
                "actions": list(rule.actions),
            })
    out.append(_send_time_recommendation(engagement))
    return out
