"""Recency based lifecycle (churn) classification.

Every subscriber lands in exactly one tier, first match wins:

1. ``unsubscribed`` when the directory says so, whatever the recency;
2. ``churned`` when the subscriber never opened or clicked;
3. ``active`` / ``atRisk`` / ``inactive`` for last engagement at most
   30 / 60 / 90 days ago, measured to the microsecond;
4. ``churned`` otherwise.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd
import polars as pl

from .profiles import build_profiles

ACTIVE = "active"
AT_RISK = "atRisk"
INACTIVE = "inactive"
CHURNED = "churned"
UNSUBSCRIBED = "unsubscribed"

TIERS = (ACTIVE, AT_RISK, INACTIVE, CHURNED, UNSUBSCRIBED)

ACTIVE_DAYS = 30
AT_RISK_DAYS = 60
INACTIVE_DAYS = 90

_age = pl.col("last_engaged_age")

_TIER_EXPR = (
    pl.when(pl.col("status") == UNSUBSCRIBED)
    .then(pl.lit(UNSUBSCRIBED))
    .when(pl.col("last_engaged_at").is_null())
    .then(pl.lit(CHURNED))
    .when(_age <= pl.duration(days=ACTIVE_DAYS))
    .then(pl.lit(ACTIVE))
    .when(_age <= pl.duration(days=AT_RISK_DAYS))
    .then(pl.lit(AT_RISK))
    .when(_age <= pl.duration(days=INACTIVE_DAYS))
    .then(pl.lit(INACTIVE))
    .otherwise(pl.lit(CHURNED))
)


def assign_lifecycle_tiers(profiles: pl.DataFrame) -> pl.DataFrame:
    return profiles.with_columns(_TIER_EXPR.alias("tier"))


def _risk_factors(stats: Dict[str, Dict[str, Any]]) -> List[Dict[str, str]]:
    factors: List[Dict[str, str]] = []

    healthy = stats[ACTIVE]["count"] + stats[AT_RISK]["count"]
    lapsed = stats[INACTIVE]["count"] + stats[CHURNED]["count"]
    if lapsed > healthy:
        factors.append({
            "factor": "High Churn Rate",
            "severity": "high",
            "description": "More subscribers are churned/inactive than active",
        })

    active_score = stats[ACTIVE]["avg_engagement_score"]
    at_risk_score = stats[AT_RISK]["avg_engagement_score"]
    if active_score < 40:
        factors.append({
            "factor": "Low Active Engagement",
            "severity": "medium",
            "description": "Even active subscribers show low engagement scores",
        })
    if at_risk_score > active_score * 0.8:
        factors.append({
            "factor": "Rapid Engagement Decline",
            "severity": "high",
            "description": "At-risk subscribers had similar engagement to active ones",
        })
    return factors


def churn_from_profiles(profiles: pl.DataFrame) -> Dict[str, Any]:
    tiered = assign_lifecycle_tiers(profiles)
    total = tiered.height

    grouped = {
        row["tier"]: row
        for row in tiered.group_by("tier")
        .agg(
            pl.len().cast(pl.Int64).alias("count"),
            pl.col("engagement_score").mean().alias("avg_engagement_score"),
        )
        .to_dicts()
    }

    stats: Dict[str, Dict[str, Any]] = {}
    for tier in TIERS:
        row = grouped.get(tier)
        count = int(row["count"]) if row else 0
        stats[tier] = {
            "count": count,
            "percentage": (count / total) * 100.0 if total > 0 else 0.0,
            "avg_engagement_score": float(row["avg_engagement_score"] or 0.0) if row else 0.0,
        }

    lapsed = stats[AT_RISK]["count"] + stats[INACTIVE]["count"] + stats[CHURNED]["count"]
    return {
        "total": total,
        "classifications": stats,
        "churn_rate": {
            "monthly": (lapsed / total) * 100.0 if total > 0 else 0.0,
            "quarterly": (stats[CHURNED]["count"] / total) * 100.0 if total > 0 else 0.0,
        },
        "risk_factors": _risk_factors(stats),
    }


def analyze_churn(
    subscribers: pd.DataFrame | pl.DataFrame | None,
    events: pd.DataFrame | pl.DataFrame | None,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Classify every subscriber into a churn tier and summarise the tiers."""
    return churn_from_profiles(build_profiles(subscribers, events, now=now))
